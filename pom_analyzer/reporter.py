"""Assemble pipeline outputs into the cross-referenced analysis document."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from pom_analyzer.config import AnalyzerConfig
from pom_analyzer.locators.fragility import STABILITY_THRESHOLD
from pom_analyzer.models import (
    SCHEMA_VERSION,
    Action,
    AnalysisResult,
    AnalysisWarning,
    Assertion,
    Component,
    MethodSuggestion,
    Page,
    Recommendation,
    Statement,
    selector_to_dict,
)
from pom_analyzer.structure.method_grouper import COMPLEXITY_HIGH_WATER_MARK

logger = logging.getLogger(__name__)

STRATEGIES = ("testid", "role", "text", "css", "xpath", "placeholder")

LIMITS = {
    "actions": 200,
    "pages": 20,
    "components": 10,
}

LOW_CONFIDENCE = 70


@dataclass
class ReportInput:
    """Everything the earlier stages produced for one script."""

    text: str
    statements: list[Statement]
    pages: list[Page]
    components: list[Component]
    usages: dict[str, str]
    methods: dict[str, list[MethodSuggestion]]
    config: AnalyzerConfig
    source_name: str | None = None
    warnings: list[AnalysisWarning] = field(default_factory=list)
    component_recommendations: list[Recommendation] = field(default_factory=list)


def _items(pages: list[Page]) -> list[Action | Assertion]:
    return [item for page in pages for item in page.items]


def build_selector_analysis(pages: list[Page]) -> tuple[dict, dict[str, str]]:
    """Build the selector registry, histograms and duplicate report.

    Returns:
        Tuple of (selector_analysis section, normalized raw -> selector id)
    """
    registry: dict[str, dict] = {}
    ids: dict[str, str] = {}
    for item in _items(pages):
        selector = item.selector
        if selector is None:
            continue
        if selector.raw not in registry:
            ids[selector.raw] = f"selector_{len(ids) + 1}"
            entry = {"id": ids[selector.raw], **selector_to_dict(selector)}
            entry["used_by"] = []
            entry["line_numbers"] = []
            registry[selector.raw] = entry
        registry[selector.raw]["used_by"].append(item.id)
        registry[selector.raw]["line_numbers"].append(item.line_number)

    entries = list(registry.values())
    by_strategy = {strategy: 0 for strategy in STRATEGIES}
    for entry in entries:
        by_strategy[entry["strategy"]] += 1

    scores = [entry["fragility_score"] for entry in entries]
    fragile = [
        {"selector_id": e["id"], "raw": e["raw"], "fragility_score": e["fragility_score"]}
        for e in entries
        if e["fragility_score"] > STABILITY_THRESHOLD
    ]
    duplicates = [
        {
            "selector_id": e["id"],
            "raw": e["raw"],
            "occurrences": len(e["used_by"]),
            "item_ids": e["used_by"],
            "line_numbers": e["line_numbers"],
        }
        for e in entries
        if len(e["used_by"]) >= 2
    ]

    analysis = {
        "total_selectors": len(entries),
        "by_strategy": by_strategy,
        "average_fragility": round(sum(scores) / len(scores)) if scores else 0,
        "stability_threshold": STABILITY_THRESHOLD,
        "fragile_selectors": fragile,
        "duplicates": duplicates,
        "selectors": entries,
    }
    return analysis, ids


def _architectural(report: ReportInput) -> list[Recommendation]:
    recommendations = []
    pages = report.pages
    if len(pages) >= 2:
        recommendations.append(
            Recommendation(
                code="base_page",
                message=(
                    f"Extract a BasePage class shared by the {len(pages)} page objects for "
                    "common navigation and wait helpers"
                ),
                related_ids=[p.id for p in pages],
            )
        )

    by_pattern: dict[str, list[Page]] = defaultdict(list)
    for page in pages:
        if page.url_pattern:
            by_pattern[page.url_pattern].append(page)
    for pattern, shared in by_pattern.items():
        if len(shared) >= 2:
            names = ", ".join(p.inferred_name for p in shared)
            recommendations.append(
                Recommendation(
                    code="shared_url_pattern",
                    message=f"{names} share the URL pattern {pattern}; consider one page object",
                    related_ids=[p.id for p in shared],
                    line_numbers=[p.line_range[0] for p in shared],
                )
            )

    recommendations.extend(report.component_recommendations)
    return recommendations


def _refactoring(report: ReportInput, selector_analysis: dict) -> list[Recommendation]:
    recommendations = []
    for owner_methods in report.methods.values():
        for method in owner_methods:
            if method.complexity > COMPLEXITY_HIGH_WATER_MARK:
                recommendations.append(
                    Recommendation(
                        code="high_complexity",
                        message=(
                            f"Method {method.name} has complexity {method.complexity} "
                            f"({', '.join(method.complexity_signals) or 'many actions'}); "
                            "consider splitting it"
                        ),
                        severity="warning",
                        related_ids=[method.id],
                        line_numbers=list(method.line_range),
                    )
                )
    for duplicate in selector_analysis["duplicates"]:
        recommendations.append(
            Recommendation(
                code="duplicate_selector",
                message=(
                    f"Selector {duplicate['raw']!r} is used {duplicate['occurrences']} times; "
                    "define it once as a locator property"
                ),
                related_ids=[duplicate["selector_id"], *duplicate["item_ids"]],
                line_numbers=duplicate["line_numbers"],
            )
        )
    return recommendations


def _quality(report: ReportInput, selector_analysis: dict) -> list[Recommendation]:
    recommendations = []
    if report.config.selector_analysis.flag_fragile_selectors:
        lines = {e["id"]: e["line_numbers"] for e in selector_analysis["selectors"]}
        for fragile in selector_analysis["fragile_selectors"]:
            score = fragile["fragility_score"]
            recommendations.append(
                Recommendation(
                    code="fragile_selector",
                    message=f"Selector {fragile['raw']!r} has fragility score {score}",
                    severity="warning" if score >= LOW_CONFIDENCE else "info",
                    related_ids=[fragile["selector_id"]],
                    line_numbers=lines[fragile["selector_id"]],
                )
            )

    for item in _items(report.pages):
        if isinstance(item, Action) and item.wait_behavior.anti_pattern:
            recommendations.append(
                Recommendation(
                    code="fixed_timeout_wait",
                    message=(
                        "Replace the fixed waitForTimeout with a wait on a URL, element or "
                        "load state"
                    ),
                    severity="warning",
                    related_ids=[item.id],
                    line_numbers=[item.line_number],
                )
            )
        elif isinstance(item, Assertion) and item.type == "custom":
            recommendations.append(
                Recommendation(
                    code="custom_assertion",
                    message=f"Matcher '{item.matcher}' is not a recognized assertion type",
                    related_ids=[item.id],
                    line_numbers=[item.line_number],
                )
            )

    for page in report.pages:
        if page.confidence < LOW_CONFIDENCE:
            recommendations.append(
                Recommendation(
                    code="low_confidence_page",
                    message=(
                        f"Boundary of {page.inferred_name} ({page.origin}) is uncertain "
                        f"(confidence {page.confidence}); review it"
                    ),
                    related_ids=[page.id],
                    line_numbers=[page.line_range[0]],
                )
            )
    for component in report.components:
        if component.confidence < LOW_CONFIDENCE:
            recommendations.append(
                Recommendation(
                    code="low_confidence_component",
                    message=(
                        f"Component {component.inferred_name} is provisional "
                        f"(confidence {component.confidence})"
                    ),
                    related_ids=[component.id],
                )
            )
    for owner_methods in report.methods.values():
        for method in owner_methods:
            if method.generic_name:
                recommendations.append(
                    Recommendation(
                        code="generic_method_name",
                        message=(
                            f"Method {method.name} has no naming signal; consider "
                            f"{' or '.join(method.alternatives)}"
                        ),
                        related_ids=[method.id],
                        line_numbers=list(method.line_range),
                    )
                )
    return recommendations


def _limit_warnings(report: ReportInput) -> list[AnalysisWarning]:
    counts = {
        "actions": sum(len(p.actions) for p in report.pages),
        "pages": len(report.pages),
        "components": len(report.components),
    }
    warnings = []
    for kind, limit in LIMITS.items():
        if counts[kind] > limit:
            warnings.append(
                AnalysisWarning(
                    code="limit_exceeded",
                    message=f"{counts[kind]} {kind} exceed the supported limit of {limit}",
                )
            )
            logger.warning(f"Limit exceeded: {counts[kind]} {kind} (limit {limit})")
    return warnings


def build_action_sequences(report: ReportInput) -> list[dict]:
    """One ordered step list per test block, or a single main flow."""
    owner_of: dict[str, MethodSuggestion] = {}
    for owner_methods in report.methods.values():
        for method in owner_methods:
            if method.owner_id.startswith("page_"):
                for item_id in [*method.action_ids, *method.assertion_ids]:
                    owner_of[item_id] = method

    tests = [s for s in report.statements if s.structural_role == "test_declaration"]
    blocks: list[tuple[str, int, int | None]] = []
    if not tests:
        blocks.append(("main flow", 0, None))
    else:
        first_item_line = min((i.line_number for i in _items(report.pages)), default=0)
        if first_item_line < tests[0].line_number:
            blocks.append(("setup", 0, tests[0].line_number))
        for index, test in enumerate(tests):
            end = tests[index + 1].line_number if index + 1 < len(tests) else None
            blocks.append((test.title or f"test {index + 1}", test.line_number, end))

    sequences = []
    for name, start, end in blocks:
        steps = []
        seen_methods: set[str] = set()
        for page in report.pages:
            for item in page.items:
                if item.line_number < start or (end is not None and item.line_number >= end):
                    continue
                method = owner_of.get(item.id)
                if method is not None:
                    if method.id in seen_methods:
                        continue
                    seen_methods.add(method.id)
                    step = {"page_id": page.id, "method_id": method.id}
                    if method.delegates_to_component_id:
                        step["component_id"] = method.delegates_to_component_id
                else:
                    step = {"page_id": page.id, "assertion_id": item.id}
                step["line_number"] = item.line_number
                steps.append({"order": len(steps) + 1, **step})
        if steps or not tests:
            sequences.append(
                {"id": f"sequence_{len(sequences) + 1}", "name": name, "steps": steps}
            )
    return sequences


def build_report(report: ReportInput) -> AnalysisResult:
    """Merge all stage outputs into the final AnalysisResult.

    Args:
        report: Outputs of every earlier stage

    Returns:
        AnalysisResult ready for serialization
    """
    selector_analysis, selector_ids = build_selector_analysis(report.pages)
    warnings = [*report.warnings, *_limit_warnings(report)]

    page_of = {a.id: a.page_id for p in report.pages for a in p.actions}
    component_usages = {
        action_id: (component_id, page_of[action_id])
        for action_id, component_id in report.usages.items()
    }
    method_count = sum(len(m) for m in report.methods.values())
    action_count = sum(len(p.actions) for p in report.pages)
    assertion_count = sum(len(p.assertions) for p in report.pages)
    test_blocks = sum(1 for s in report.statements if s.structural_role == "test_declaration")

    metadata = {
        "schema_version": SCHEMA_VERSION,
        "source_name": report.source_name,
        "total_lines": len(report.text.splitlines()),
        "total_statements": len(report.statements),
        "total_actions": action_count,
        "total_assertions": assertion_count,
        "unique_pages_detected": len(report.pages),
        "components_detected": len(report.components),
        "methods_suggested": method_count,
        "test_blocks": test_blocks,
    }

    recommendations = {
        "architectural": _architectural(report),
        "refactoring": _refactoring(report, selector_analysis),
        "quality": _quality(report, selector_analysis),
    }
    logger.info(
        f"Report: {len(report.pages)} page(s), {len(report.components)} component(s), "
        f"{method_count} method(s), {len(warnings)} warning(s)"
    )
    return AnalysisResult(
        metadata=metadata,
        pages=report.pages,
        components=report.components,
        methods=report.methods,
        component_usages=component_usages,
        selector_ids=selector_ids,
        action_sequences=build_action_sequences(report),
        selector_analysis=selector_analysis,
        recommendations=recommendations,
        warnings=warnings,
    )
