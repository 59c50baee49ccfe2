"""Classify assertions by expectation keyword and recommend where they belong."""

import logging
from collections import Counter

from pom_analyzer.models import Action, AnalysisWarning, Assertion, Page

logger = logging.getLogger(__name__)

# Matcher families; anything else is reported as "custom"
ASSERTION_TYPES = [
    {
        "type": "toContainText",
        "matchers": ["toContainText", "toHaveText"],
        "description": "Element text",
    },
    {
        "type": "toBeVisible",
        "matchers": ["toBeVisible", "toBeHidden"],
        "description": "Element visibility",
    },
    {
        "type": "toHaveURL",
        "matchers": ["toHaveURL"],
        "description": "Current page URL",
    },
    {
        "type": "toHaveValue",
        "matchers": ["toHaveValue", "toHaveValues"],
        "description": "Form control value",
    },
]

URL_CHANGING_VERBS = frozenset({"click", "dblclick", "tap", "press"})
VISIBILITY_CHANGING_VERBS = frozenset({"click", "dblclick", "tap", "hover", "press", "check"})


def classify_assertion_type(matcher: str) -> str:
    """Map an expectation matcher name to its assertion type.

    Args:
        matcher: Matcher name, e.g. "toHaveText"

    Returns:
        One of toContainText, toBeVisible, toHaveURL, toHaveValue or custom
    """
    for entry in ASSERTION_TYPES:
        if matcher in entry["matchers"]:
            return entry["type"]
    return "custom"


def assertion_shape(assertion: Assertion) -> tuple[str, str | None]:
    """Type plus normalized selector; equal shapes check the same thing."""
    return (assertion.type, assertion.selector.raw if assertion.selector else None)


def _caused_by(assertion: Assertion, action: Action) -> str | None:
    """Return why the preceding action explains this assertion, if it does."""
    verb = action.verb
    if assertion.type == "toHaveURL" and verb in URL_CHANGING_VERBS:
        return f"verifies the navigation triggered by {verb} on line {action.line_number}"
    if assertion.type == "toBeVisible" and verb in VISIBILITY_CHANGING_VERBS:
        return f"verifies the element revealed by {verb} on line {action.line_number}"
    if (
        assertion.type == "toHaveValue"
        and action.selector is not None
        and assertion.selector is not None
        and action.selector.raw == assertion.selector.raw
    ):
        return f"verifies the value set by {verb} on line {action.line_number}"
    return None


def classify_assertions(pages: list[Page]) -> list[AnalysisWarning]:
    """Set the placement recommendation of every assertion in the document.

    An assertion directly after the interaction that caused the checked
    change belongs in the page object; a shape that recurs belongs in a
    shared verification method; everything else stays in the test.

    Returns:
        Warnings for assertions with an unrecognized matcher
    """
    shapes = Counter(assertion_shape(a) for page in pages for a in page.assertions)
    warnings = []
    previous: Action | Assertion | None = None

    for page in pages:
        for item in page.items:
            if isinstance(item, Assertion):
                reason = None
                if isinstance(previous, Action) and previous.kind == "interaction":
                    reason = _caused_by(item, previous)
                if reason:
                    item.placement_recommendation = "in_page_object"
                    item.placement_reason = reason
                elif shapes[assertion_shape(item)] >= 2:
                    item.placement_recommendation = "separate_method"
                    item.placement_reason = (
                        f"the same {item.type} check appears "
                        f"{shapes[assertion_shape(item)]} times"
                    )
                else:
                    item.placement_recommendation = "in_test"
                    item.placement_reason = "test-specific expectation"
                if item.type == "custom":
                    warnings.append(
                        AnalysisWarning(
                            code="custom_assertion",
                            message=f"Unrecognized matcher '{item.matcher}' kept as custom",
                            line_numbers=(item.line_number,),
                        )
                    )
                logger.debug(
                    f"Assertion {item.id} ({item.type}) -> {item.placement_recommendation}"
                )
            previous = item

    return warnings
