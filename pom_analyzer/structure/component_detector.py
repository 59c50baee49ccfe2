"""Detect recurring action fragments across pages and promote them to components."""

import logging
import re
from dataclasses import dataclass, field

from pom_analyzer.config import ComponentDetectionConfig
from pom_analyzer.locators.fragility import derive_content
from pom_analyzer.models import Action, Component, ComponentInstance, Page, Recommendation
from pom_analyzer.naming import pascal, unique_name, words

logger = logging.getLogger(__name__)

MAX_PATTERN_LENGTH = 8
EMIT_THRESHOLD = 50
PROVISIONAL_CONFIDENCE = 55
LANDMARK_BONUS = 5
TYPED_BONUS = 5
UNTYPED_SINGLE_CONFIDENCE = 45

# Checked in order; the first type with a matching token wins
TYPE_TOKENS: list[tuple[str, frozenset[str]]] = [
    ("modal", frozenset({"modal", "dialog", "alertdialog", "lightbox", "overlay", "drawer"})),
    ("header", frozenset({"header", "banner", "masthead", "topbar"})),
    ("footer", frozenset({"footer", "contentinfo"})),
    (
        "navigation",
        frozenset(
            {
                "nav",
                "navigation",
                "navbar",
                "menu",
                "menubar",
                "menuitem",
                "breadcrumb",
                "breadcrumbs",
                "sidebar",
                "sidenav",
            }
        ),
    ),
]

LANDMARK_ROLES = frozenset(
    {"banner", "contentinfo", "navigation", "dialog", "alertdialog", "menu", "menubar"}
)
LANDMARK_TAGS = frozenset({"header", "footer", "nav", "dialog"})

FILL_VERBS = frozenset(
    {"fill", "type", "pressSequentially", "selectOption", "check", "uncheck", "setInputFiles"}
)
SUBMIT_VERBS = frozenset({"click", "press", "tap"})

TYPE_TOGGLES = {
    "header": "detect_headers",
    "footer": "detect_footers",
    "modal": "detect_modals",
    "navigation": "detect_navigation",
}

TYPE_SUFFIX = {
    "header": "Header",
    "footer": "Footer",
    "modal": "Modal",
    "navigation": "Menu",
    "form": "Form",
    "custom": "Component",
}

NAVIGATION_TAILS = frozenset({"menu", "nav", "navigation", "navbar", "sidebar", "breadcrumbs"})


@dataclass
class ComponentDetectionResult:
    """Components plus the back-references from delegated actions."""

    components: list[Component]
    usages: dict[str, str] = field(default_factory=dict)  # action id -> component id
    recommendations: list[Recommendation] = field(default_factory=list)


@dataclass
class _Occurrence:
    page_id: str
    actions: list[Action]

    @property
    def first_line(self) -> int:
        return self.actions[0].line_number

    @property
    def action_ids(self) -> list[str]:
        return [a.id for a in self.actions]


@dataclass
class _Candidate:
    type: str
    confidence: int
    instances: list[_Occurrence]
    exact_match: bool
    provisional: bool = False

    @property
    def first_line(self) -> int:
        return min(o.first_line for o in self.instances)


def _eligible(action: Action) -> bool:
    return (
        action.kind == "interaction"
        and action.selector is not None
        and action.statement.subtype not in ("query", "custom")
    )


def _exact_key(action: Action) -> tuple[str, str]:
    return (action.verb or "", action.selector.raw)


def _loose_key(action: Action) -> tuple[str, str]:
    raw = re.sub(r"\d+", "#", action.selector.raw.lower()).replace('"', "'")
    return (action.verb or "", raw)


def _runs(page: Page) -> list[list[Action]]:
    """Split a page's actions into runs of pattern items.

    Waits other than URL waits are transparent; any other non-item action
    ends the run.
    """
    runs: list[list[Action]] = []
    current: list[Action] = []
    for action in page.actions:
        if _eligible(action):
            current.append(action)
        elif action.kind == "wait" and action.verb != "waitForURL":
            continue
        elif current:
            runs.append(current)
            current = []
    if current:
        runs.append(current)
    return runs


def _tokens(actions: list[Action]) -> set[str]:
    tokens: set[str] = set()
    for action in actions:
        tokens.update(words(action.selector.raw))
        role = action.selector.structured_details.get("role")
        if role:
            tokens.add(role.lower())
    return tokens


def infer_component_type(actions: list[Action]) -> str:
    """Infer a component type from selector vocabulary, roles and verbs."""
    tokens = _tokens(actions)
    for component_type, type_tokens in TYPE_TOKENS:
        if tokens & type_tokens:
            return component_type
    verbs = {a.verb for a in actions}
    if verbs & FILL_VERBS and verbs & SUBMIT_VERBS:
        return "form"
    return "custom"


def _has_landmark(actions: list[Action]) -> bool:
    for action in actions:
        details = action.selector.structured_details
        if details.get("role") in LANDMARK_ROLES or details.get("tag") in LANDMARK_TAGS:
            return True
    return False


def score_component(length: int, page_count: int, exact: bool, component_type: str) -> int:
    """Confidence for a pattern seen on page_count distinct pages."""
    if length == 1 and page_count == 2 and component_type == "custom":
        return UNTYPED_SINGLE_CONFIDENCE
    if page_count >= 3:
        confidence = 90 + 2 * (page_count - 3) if exact else 85
    else:
        confidence = 80 if exact else 72
    if component_type != "custom":
        confidence += TYPED_BONUS
    return min(confidence, 100)


def _enabled(component_type: str, config: ComponentDetectionConfig) -> bool:
    toggle = TYPE_TOGGLES.get(component_type)
    return toggle is None or getattr(config, toggle)


def _component_name(component_type: str, actions: list[Action]) -> str:
    suffix = TYPE_SUFFIX[component_type]
    if component_type in ("header", "footer"):
        return suffix
    parts = [
        w
        for w in words(derive_content(actions[0].selector))
        if w not in ("modal", "dialog", "form", "component")
    ]
    if not parts:
        return {"navigation": "Navigation", "custom": "SharedComponent"}.get(
            component_type, suffix
        )
    if component_type == "navigation" and parts[-1] in NAVIGATION_TAILS:
        return pascal(parts)
    return pascal(parts) + suffix


def _selector_templates(instances: list[_Occurrence]) -> list[dict]:
    templates = []
    for position, action in enumerate(instances[0].actions):
        variants = sorted({o.actions[position].selector.raw for o in instances})
        template = {
            "order": position + 1,
            "action_verb": action.verb,
            "selector": action.selector.raw,
            "strategy": action.selector.strategy,
        }
        if len(variants) > 1:
            template["variants"] = variants
        templates.append(template)
    return templates


class _ComponentDetector:
    def __init__(self, pages: list[Page], config: ComponentDetectionConfig):
        self.pages = pages
        self.config = config
        self.required = max(config.min_appearances_for_component, 2)
        self.claimed: set[str] = set()
        self.recommendations: list[Recommendation] = []

    def _count(self) -> dict[tuple, dict[str, list[_Occurrence]]]:
        occurrences: dict[tuple, dict[str, list[_Occurrence]]] = {}
        for page in self.pages:
            for run in _runs(page):
                for length in range(1, min(MAX_PATTERN_LENGTH, len(run)) + 1):
                    for start in range(len(run) - length + 1):
                        window = run[start : start + length]
                        key = tuple(_loose_key(a) for a in window)
                        occurrences.setdefault(key, {}).setdefault(page.id, []).append(
                            _Occurrence(page.id, window)
                        )
        return occurrences

    def _free(self, occurrence: _Occurrence) -> bool:
        return not any(action_id in self.claimed for action_id in occurrence.action_ids)

    def _recommend(self, message: str, instances: list[_Occurrence], confidence: int) -> None:
        self.recommendations.append(
            Recommendation(
                code="component_candidate",
                message=f"{message} (confidence {confidence})",
                severity="info",
                related_ids=[o.page_id for o in instances],
                line_numbers=sorted(a.line_number for o in instances for a in o.actions),
            )
        )

    def recurring(self) -> list[_Candidate]:
        occurrences = self._count()
        keys = [key for key, by_page in occurrences.items() if len(by_page) >= self.required]
        keys.sort(
            key=lambda k: (
                -len(k),
                -len(occurrences[k]),
                min(o[0].first_line for o in occurrences[k].values()),
            )
        )

        accepted = []
        for key in keys:
            instances = []
            for page_occurrences in occurrences[key].values():
                free = next((o for o in page_occurrences if self._free(o)), None)
                if free is not None:
                    instances.append(free)
            if len(instances) < self.required:
                continue

            actions = [a for o in instances for a in o.actions]
            component_type = infer_component_type(actions)
            if not _enabled(component_type, self.config):
                logger.debug(f"Skipping {component_type} pattern, detection disabled")
                continue
            exact = len({tuple(_exact_key(a) for a in o.actions) for o in instances}) == 1
            confidence = score_component(len(key), len(instances), exact, component_type)
            if confidence < EMIT_THRESHOLD:
                verb = key[0][0]
                self._recommend(
                    f"'{verb}' on {instances[0].actions[0].selector.raw!r} repeats on "
                    f"{len(instances)} pages; consider a shared component if it belongs to "
                    "common layout",
                    instances,
                    confidence,
                )
                continue

            for occurrence in instances:
                self.claimed.update(occurrence.action_ids)
            accepted.append(_Candidate(component_type, confidence, instances, exact))
        return accepted

    def provisional(self) -> list[_Candidate]:
        """Typed landmark runs seen on only one page."""
        found = []
        for page in self.pages:
            for run in _runs(page):
                segment: list[Action] = []
                for action in [*run, None]:
                    if (
                        action is not None
                        and action.id not in self.claimed
                        and infer_component_type([action]) not in ("custom", "form")
                    ):
                        segment.append(action)
                        continue
                    if len(segment) >= 2:
                        found.append(self._provisional_candidate(page, segment))
                    segment = []
        return [c for c in found if c is not None]

    def _provisional_candidate(self, page: Page, segment: list[Action]) -> _Candidate | None:
        component_type = infer_component_type(segment)
        if not _enabled(component_type, self.config):
            return None
        confidence = PROVISIONAL_CONFIDENCE + (LANDMARK_BONUS if _has_landmark(segment) else 0)
        occurrence = _Occurrence(page.id, segment)
        if self.config.min_appearances_for_component > 1:
            self._recommend(
                f"Possible {component_type} component on {page.inferred_name} needs more "
                "evidence: it was seen on one page only",
                [occurrence],
                confidence,
            )
            return None
        self.claimed.update(occurrence.action_ids)
        return _Candidate(component_type, confidence, [occurrence], True, provisional=True)


def detect_components(
    pages: list[Page],
    config: ComponentDetectionConfig | None = None,
) -> ComponentDetectionResult:
    """Find action sub-sequences that recur across distinct pages.

    Patterns are matched on (verb, selector) shapes. Longer patterns seen on
    more pages win; an action belongs to at most one component. Pages are not
    modified: delegated actions are reported through the usage map.

    Args:
        pages: Pages with bound actions
        config: Component detection options

    Returns:
        ComponentDetectionResult with components ordered by first appearance
    """
    config = config or ComponentDetectionConfig()
    detector = _ComponentDetector(pages, config)
    candidates = detector.recurring() + detector.provisional()
    candidates.sort(key=lambda c: c.first_line)

    components = []
    usages: dict[str, str] = {}
    taken: set[str] = set()
    for index, candidate in enumerate(candidates, start=1):
        component_id = f"component_{index}"
        first = candidate.instances[0]
        components.append(
            Component(
                id=component_id,
                inferred_name=unique_name(_component_name(candidate.type, first.actions), taken),
                type=candidate.type,
                confidence=candidate.confidence,
                instances=[
                    ComponentInstance(page_id=o.page_id, action_ids=o.action_ids)
                    for o in candidate.instances
                ],
                selector_templates=_selector_templates(candidate.instances),
                exact_match=candidate.exact_match,
                provisional=candidate.provisional,
            )
        )
        for occurrence in candidate.instances:
            for action_id in occurrence.action_ids:
                usages[action_id] = component_id

    logger.info(f"Detected {len(components)} component(s)")
    return ComponentDetectionResult(
        components=components,
        usages=usages,
        recommendations=detector.recommendations,
    )
