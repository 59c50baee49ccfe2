"""Score selector fragility and suggest more stable replacements."""

import logging
import re
from collections.abc import Callable
from dataclasses import replace

from pom_analyzer.config import DEFAULT_PREFERRED_STRATEGIES
from pom_analyzer.extractor.call_parser import quote
from pom_analyzer.locators.classifier import TESTID_ATTRIBUTES
from pom_analyzer.models import ImprovementCandidate, Selector
from pom_analyzer.naming import kebab

logger = logging.getLogger(__name__)

BASE_SCORE = 50
STABILITY_THRESHOLD = 40
MAX_NESTING_DEPTH = 3

SIGNAL_WEIGHTS = {
    # Penalties
    "xpath_syntax": 40,
    "positional": 35,
    "placeholder_only": 30,
    "class_only": 25,
    "text_only": 20,
    "deep_nesting": 15,
    "id_only": 10,
    "multiple_attributes": 5,
    # Credits
    "testid": -40,
    "role": -30,
    "name_with_type": -20,
    "aria_attribute": -15,
    "label_association": -10,
}

POSITIONAL_PATTERN = re.compile(
    r":nth-(?:child|of-type|last-child|last-of-type|match)\(|:(?:first|last)-(?:child|of-type)"
    r"|>>\s*nth=|\.nth\(|\.first\(\)|\.last\(\)"
)
XPATH_POSITIONAL_PATTERN = re.compile(r"\[\s*\d+\s*\]|position\(\)|last\(\)")

# Attributes whose values are worth carrying into a suggested locator, in order
CONTENT_ATTRIBUTES = ("aria-label", "placeholder", "name", "title", "alt", "id", "value")

DYNAMIC_CONTENT_PATTERN = re.compile(r"\$\{|^[0-9a-f]{8,}$|^[\d\W_]+$|^:r\w+:$")

TAG_ROLES = {
    "button": "button",
    "a": "link",
    "select": "combobox",
    "textarea": "textbox",
    "img": "img",
    "h1": "heading",
    "h2": "heading",
    "h3": "heading",
    "h4": "heading",
    "h5": "heading",
    "h6": "heading",
    "nav": "navigation",
    "dialog": "dialog",
}

INPUT_TYPE_ROLES = {
    "checkbox": "checkbox",
    "radio": "radio",
    "submit": "button",
    "button": "button",
    "reset": "button",
    "search": "searchbox",
}

VERB_ROLES = {
    "fill": "textbox",
    "type": "textbox",
    "pressSequentially": "textbox",
    "clear": "textbox",
    "check": "checkbox",
    "uncheck": "checkbox",
    "setChecked": "checkbox",
    "selectOption": "combobox",
    "click": "button",
    "dblclick": "button",
    "tap": "button",
}


def _attributes(selector: Selector) -> dict[str, str]:
    """Attribute map without `class`, which counts as a class name."""
    attributes = dict(selector.structured_details.get("attributes", {}))
    attributes.pop("class", None)
    return attributes


def _classes(selector: Selector) -> list[str]:
    classes = list(selector.structured_details.get("classes", []))
    class_attr = selector.structured_details.get("attributes", {}).get("class")
    if class_attr:
        classes.extend(class_attr.split())
    return classes


def _is_xpath(selector: Selector) -> bool:
    return selector.strategy == "xpath"


def _is_positional(selector: Selector) -> bool:
    if POSITIONAL_PATTERN.search(selector.raw):
        return True
    return _is_xpath(selector) and bool(XPATH_POSITIONAL_PATTERN.search(selector.raw))


def _is_placeholder_only(selector: Selector) -> bool:
    return selector.strategy == "placeholder"


def _is_class_only(selector: Selector) -> bool:
    if selector.strategy not in ("css", "xpath"):
        return False
    details = selector.structured_details
    return bool(_classes(selector)) and not details.get("id") and not _attributes(selector)


def _is_text_only(selector: Selector) -> bool:
    return selector.strategy == "text" and selector.structured_details.get("accessor") in (
        "text",
        "alt",
        "title",
    )


def _is_deeply_nested(selector: Selector) -> bool:
    return selector.structured_details.get("depth", 0) > MAX_NESTING_DEPTH


def _is_id_only(selector: Selector) -> bool:
    details = selector.structured_details
    return (
        selector.strategy == "css"
        and bool(details.get("id"))
        and not _classes(selector)
        and not _attributes(selector)
    )


def _has_multiple_attributes(selector: Selector) -> bool:
    return len(_attributes(selector)) >= 2


def _is_testid(selector: Selector) -> bool:
    return selector.strategy == "testid"


def _is_role(selector: Selector) -> bool:
    return selector.strategy == "role"


def _has_name_with_type(selector: Selector) -> bool:
    attributes = _attributes(selector)
    return "name" in attributes and "type" in attributes


def _has_aria_attribute(selector: Selector) -> bool:
    return any(name.startswith("aria-") for name in _attributes(selector))


def _has_label_association(selector: Selector) -> bool:
    if selector.strategy == "text" and selector.structured_details.get("accessor") == "label":
        return True
    return "for" in _attributes(selector)


SIGNAL_DETECTORS: list[tuple[str, Callable[[Selector], bool]]] = [
    ("xpath_syntax", _is_xpath),
    ("positional", _is_positional),
    ("placeholder_only", _is_placeholder_only),
    ("class_only", _is_class_only),
    ("text_only", _is_text_only),
    ("deep_nesting", _is_deeply_nested),
    ("id_only", _is_id_only),
    ("multiple_attributes", _has_multiple_attributes),
    ("testid", _is_testid),
    ("role", _is_role),
    ("name_with_type", _has_name_with_type),
    ("aria_attribute", _has_aria_attribute),
    ("label_association", _has_label_association),
]


def detect_signals(selector: Selector) -> tuple[str, ...]:
    """Return the names of every fragility or stability signal present."""
    return tuple(name for name, detector in SIGNAL_DETECTORS if detector(selector))


def score_selector(selector: Selector) -> int:
    """Compute a fragility score in [0, 100]; higher breaks more easily."""
    total = BASE_SCORE + sum(SIGNAL_WEIGHTS[name] for name in detect_signals(selector))
    return max(0, min(100, total))


def _usable(text: str | None) -> str | None:
    if not text:
        return None
    cleaned = " ".join(text.split()).strip("^$/")
    if not cleaned or DYNAMIC_CONTENT_PATTERN.search(cleaned):
        return None
    return cleaned


def derive_content(selector: Selector) -> str | None:
    """Find human-meaningful text in a selector to build a replacement from.

    Class names are never used: they describe styling, not purpose.
    """
    details = selector.structured_details
    for key in ("accessible_name", "text"):
        content = _usable(details.get(key))
        if content:
            return content
    attributes = details.get("attributes", {})
    for attr in TESTID_ATTRIBUTES:
        content = _usable(attributes.get(attr))
        if content:
            return content
    for attr in CONTENT_ATTRIBUTES:
        content = _usable(attributes.get(attr))
        if content:
            return content
    return _usable(details.get("id"))


def infer_role(selector: Selector, verb: str | None = None) -> str | None:
    """Guess the ARIA role of the element a selector targets."""
    details = selector.structured_details
    if details.get("role"):
        return details["role"]
    tag = details.get("tag")
    if tag == "input":
        input_type = details.get("attributes", {}).get("type", "text")
        return INPUT_TYPE_ROLES.get(input_type, "textbox")
    if tag in TAG_ROLES:
        return TAG_ROLES[tag]
    role_attr = details.get("attributes", {}).get("role")
    if role_attr:
        return role_attr
    if selector.strategy == "text" and details.get("accessor") == "label":
        return VERB_ROLES.get(verb or "fill", "textbox")
    return VERB_ROLES.get(verb or "")


def _escape_selector_value(value: str) -> str:
    """Escape special characters in selector values."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _source_change_candidate(selector: Selector) -> ImprovementCandidate:
    return ImprovementCandidate(
        strategy="source_change",
        rendered_selector=None,
        rationale=(
            f"No stable text or attribute can be derived from {selector.raw!r}; add a "
            "data-testid attribute to the element in the application source."
        ),
        actionable=False,
    )


def suggest_improvements(
    selector: Selector,
    preferred_strategies: list[str] | tuple[str, ...] = DEFAULT_PREFERRED_STRATEGIES,
    verb: str | None = None,
) -> tuple[ImprovementCandidate, ...]:
    """Propose test-id and role replacements for a fragile selector.

    Args:
        selector: Classified and scored selector
        preferred_strategies: Order in which candidate forms are proposed
        verb: Action performed on the element, used as a role hint

    Returns:
        Ordered candidates; empty when the selector is already stable
    """
    if selector.fragility_score <= STABILITY_THRESHOLD:
        return ()

    content = derive_content(selector)
    if content is None:
        return (_source_change_candidate(selector),)

    candidates = []
    for strategy in preferred_strategies:
        if strategy == "testid":
            testid = kebab(content) or _escape_selector_value(content)
            rendered = f"getByTestId({quote(testid)})"
            rationale = (
                f'A data-testid="{testid}" attribute survives layout, styling and copy '
                "changes."
            )
        elif strategy == "role":
            role = infer_role(selector, verb)
            if role is None:
                continue
            rendered = f"getByRole({quote(role)}, {{ name: {quote(content)} }})"
            rationale = (
                f"The {role} role with its accessible name locates the element the way "
                "users perceive it."
            )
        else:
            continue
        if rendered == selector.raw:
            continue
        candidates.append(
            ImprovementCandidate(strategy=strategy, rendered_selector=rendered, rationale=rationale)
        )

    if not candidates:
        return (_source_change_candidate(selector),)
    return tuple(candidates)


def assess_selector(
    selector: Selector,
    preferred_strategies: list[str] | tuple[str, ...] = DEFAULT_PREFERRED_STRATEGIES,
    verb: str | None = None,
    suggest: bool = True,
) -> Selector:
    """Return a copy of a classified selector with score, signals and candidates."""
    signals = detect_signals(selector)
    scored = replace(
        selector,
        fragility_score=score_selector(selector),
        fragility_signals=signals,
    )
    if suggest:
        scored = replace(
            scored,
            improvement_candidates=suggest_improvements(scored, preferred_strategies, verb),
        )
    logger.debug(f"Scored {scored.raw!r}: {scored.fragility_score} {list(signals)}")
    return scored
