"""Bind page segments into pages of actions and assertions with stable ids."""

import logging
import re
from dataclasses import dataclass, field

from pom_analyzer.assertion_classifier import classify_assertion_type
from pom_analyzer.config import AnalyzerConfig
from pom_analyzer.extractor.call_parser import parse_literal
from pom_analyzer.locators.classifier import classify_selector
from pom_analyzer.locators.fragility import assess_selector, derive_content
from pom_analyzer.models import (
    Action,
    AnalysisWarning,
    Assertion,
    Page,
    PageSegment,
    Parameter,
    Selector,
    Statement,
    WaitBehavior,
)
from pom_analyzer.naming import camel, words

logger = logging.getLogger(__name__)

WAIT_STRATEGIES = {
    "waitForURL": "url",
    "waitForNavigation": "url",
    "waitForLoadState": "load_state",
    "waitForSelector": "selector",
    "waitForResponse": "network",
    "waitForRequest": "network",
    "waitForFunction": "function",
    "waitForTimeout": "fixed_timeout",
    "waitForEvent": "event",
}

# Verb -> (parameter type, fallback name)
VALUE_VERBS = {
    "fill": ("string", "value"),
    "type": ("string", "value"),
    "pressSequentially": ("string", "value"),
    "selectOption": ("option", "option"),
    "setInputFiles": ("file", "filePath"),
    "press": ("key", "key"),
    "setChecked": ("boolean", "checked"),
}

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_$][\w$]*")


@dataclass
class BindingResult:
    """Pages with bound actions and assertions."""

    pages: list[Page]
    warnings: list[AnalysisWarning] = field(default_factory=list)


def wait_behavior(statement: Statement) -> WaitBehavior:
    """Describe how a statement waits for the application."""
    verb = statement.action_verb
    if statement.kind == "wait" or verb == "waitForEvent":
        strategy = WAIT_STRATEGIES.get(verb or "", "event")
        timeout = statement.timeout_ms
        if verb == "waitForTimeout":
            numbers = [v for v in statement.literal_arguments if isinstance(v, int)]
            timeout = numbers[0] if numbers else timeout
        return WaitBehavior(
            strategy=strategy,
            timeout_ms=timeout,
            anti_pattern=verb == "waitForTimeout",
        )
    if statement.kind == "navigation":
        return WaitBehavior(strategy="load_state", timeout_ms=statement.timeout_ms)
    return WaitBehavior(strategy="auto", timeout_ms=statement.timeout_ms)


def _variable_name(expression: str) -> str | None:
    """Name a parameter after the variable an argument reads from."""
    text = expression.strip()
    if text.startswith("`"):
        names = re.findall(r"\$\{\s*([\w$.]+)\s*\}", text)
        text = names[-1] if names else ""
    identifiers = IDENTIFIER_PATTERN.findall(text)
    if not identifiers or identifiers[-1] in ("true", "false", "null", "undefined"):
        return None
    return camel(words(identifiers[-1]))


def _parameter_type(value: object, default: str) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return default


def extract_parameters(statement: Statement, selector: Selector | None) -> list[Parameter]:
    """Extract the value a statement passes to the application, if any."""
    verb = statement.action_verb or ""
    if statement.subtype == "keyboard":
        value_type, fallback = ("string", "text") if verb in ("type", "insertText") else (
            "key",
            "key",
        )
    elif verb in VALUE_VERBS:
        value_type, fallback = VALUE_VERBS[verb]
    else:
        return []
    if not statement.argument_expressions:
        return []

    expression = statement.argument_expressions[0]
    is_literal, value = parse_literal(expression)

    name = None
    if not is_literal:
        name = _variable_name(expression)
    if name is None and selector is not None and value_type != "key":
        name = camel(words(derive_content(selector)))
    name = name or fallback

    should_be_parameter = True
    if value_type in ("key", "boolean") or (
        is_literal and (value is None or value == "" or isinstance(value, bool))
    ):
        should_be_parameter = False

    return [
        Parameter(
            name=name,
            type=_parameter_type(value, value_type),
            example_value=value if is_literal else expression,
            should_be_parameter=should_be_parameter,
            source="literal" if is_literal else "variable",
        )
    ]


class _Binder:
    def __init__(self, config: AnalyzerConfig):
        self.config = config
        self.action_count = 0
        self.assertion_count = 0
        self.warnings: list[AnalysisWarning] = []

    def selector(self, statement: Statement) -> Selector | None:
        if not statement.selector_expression:
            return None
        options = self.config.selector_analysis
        return assess_selector(
            classify_selector(statement.selector_expression),
            preferred_strategies=options.preferred_strategies,
            verb=statement.action_verb,
            suggest=options.suggest_improvements,
        )

    def action(self, statement: Statement, page_id: str) -> Action:
        self.action_count += 1
        action_id = f"action_{self.action_count}"
        selector = self.selector(statement)
        parameters = extract_parameters(statement, selector)
        for parameter in parameters:
            parameter.action_ids.append(action_id)
        if statement.subtype == "custom":
            self.warnings.append(
                AnalysisWarning(
                    code="unsupported_action",
                    message=f"Unrecognized call '{statement.action_verb}' kept as custom",
                    line_numbers=(statement.line_number,),
                )
            )
        return Action(
            id=action_id,
            page_id=page_id,
            statement=statement,
            wait_behavior=wait_behavior(statement),
            selector=selector,
            parameters=parameters,
        )

    def assertion(self, statement: Statement, page_id: str) -> Assertion:
        self.assertion_count += 1
        matcher = statement.action_verb or "unknown"
        expected = None
        if statement.literal_arguments:
            expected = statement.literal_arguments[0]
        elif statement.argument_expressions:
            expected = statement.argument_expressions[0]
        return Assertion(
            id=f"assertion_{self.assertion_count}",
            page_id=page_id,
            statement=statement,
            type=classify_assertion_type(matcher),
            matcher=matcher,
            negated=statement.negated,
            selector=self.selector(statement),
            expected_value=expected,
        )

    def page(self, segment: PageSegment, index: int) -> Page:
        page = Page(
            id=f"page_{index}",
            inferred_name=segment.inferred_name,
            confidence=segment.confidence,
            entry_event=segment.entry_event,
            exit_event=segment.exit_event,
            origin=segment.origin,
            url=segment.url,
            url_pattern=segment.url_pattern,
            page_variable=segment.page_variable,
            statements=list(segment.statements),
        )
        for statement in segment.statements:
            if statement.multi_statement:
                self.warnings.append(
                    AnalysisWarning(
                        code="multi_statement_line",
                        message="Several statements share one line; only the first is analyzed",
                        line_numbers=(statement.line_number,),
                    )
                )
            if statement.kind == "assertion":
                page.assertions.append(self.assertion(statement, page.id))
            elif not statement.is_structural:
                page.actions.append(self.action(statement, page.id))
        return page


def bind_pages(segments: list[PageSegment], config: AnalyzerConfig | None = None) -> BindingResult:
    """Turn page segments into pages owning actions and assertions.

    Ids are assigned in source order: page_n, action_n and assertion_n.
    Selectors are classified and scored as they are bound.

    Args:
        segments: Page segments from the page boundary detector
        config: Analyzer configuration (selector options are used)

    Returns:
        BindingResult with pages and binding warnings
    """
    binder = _Binder(config or AnalyzerConfig())
    pages = [binder.page(segment, index) for index, segment in enumerate(segments, start=1)]
    logger.info(
        f"Bound {binder.action_count} action(s) and {binder.assertion_count} "
        f"assertion(s) on {len(pages)} page(s)"
    )
    return BindingResult(pages=pages, warnings=binder.warnings)
