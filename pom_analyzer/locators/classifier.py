"""Classify locator expressions by strategy."""

import logging
import re
from typing import Any

from pom_analyzer.extractor.call_parser import (
    CallChain,
    parse_chain,
    parse_literal,
    parse_object_literal,
    quote,
    split_top_level,
    string_value,
)
from pom_analyzer.models import Selector

logger = logging.getLogger(__name__)

TESTID_ATTRIBUTES = ("data-testid", "data-test-id", "data-test", "data-qa", "data-cy")

TEXT_ACCESSORS = {
    "getByText": "text",
    "getByLabel": "label",
    "getByAltText": "alt",
    "getByTitle": "title",
}

ACCESSOR_NAMES = frozenset(
    {
        "locator",
        "getByRole",
        "getByTestId",
        "getByPlaceholder",
        "frameLocator",
        "contentFrame",
        "nth",
        "first",
        "last",
        "filter",
        "and",
        "or",
        *TEXT_ACCESSORS,
    }
)

# Chain steps that narrow a match without adding a level of nesting
NON_NESTING_STEPS = frozenset({"nth", "first", "last", "filter", "and", "or"})

ATTRIBUTE_PATTERN = re.compile(
    r"\[\s*([\w:-]+)\s*(?:[*^$|~]?=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\]\s]*)))?\s*(?:[is])?\s*\]"
)
XPATH_ATTRIBUTE_PATTERN = re.compile(r"@([\w:-]+)\s*(?:=|,)\s*(?:\"([^\"]*)\"|'([^']*)')")
XPATH_TEXT_PATTERN = re.compile(r"text\(\)\s*(?:=|,)\s*(?:\"([^\"]*)\"|'([^']*)')")
PSEUDO_TEXT_PATTERN = re.compile(
    r":(has-text|text|text-is)\(\s*(?:\"([^\"]*)\"|'([^']*)')\s*\)"
)
ROLE_ENGINE_PATTERN = re.compile(
    r"^(?:internal:)?role=([\w-]+)(?:\[name=(?:\"([^\"]*)\"|'([^']*)')[^\]]*\])?"
)
TESTID_ENGINE_PATTERN = re.compile(r"^(?:internal:)?(data-testid|data-test-id|data-test)=(.+)$")
TEXT_ENGINE_PATTERN = re.compile(r"^(?:internal:)?text=(.+)$")
XPATH_PREFIXES = ("//", "(//", "xpath=", "/html")
PAGE_RECEIVER_PATTERN = re.compile(
    r"^(?:this\.)?(?:page|popup|\w+Page|\w+Popup)\s*\.\s*(?=[A-Za-z])"
)


def _normalize_value(raw: str) -> str:
    """Render one argument or option value in canonical form."""
    text = " ".join(raw.split())
    if text.startswith("{") and text.endswith("}"):
        entries = []
        for entry in split_top_level(text[1:-1]):
            parts = split_top_level(entry, separator=":")
            if len(parts) < 2:
                entries.append(entry.strip())
                continue
            key = parts[0].strip().strip("'\"")
            entries.append(f"{key}: {_normalize_value(':'.join(parts[1:]))}")
        return "{ " + ", ".join(entries) + " }" if entries else "{}"
    value = string_value(text)
    if value is not None and not text.startswith("/"):
        return quote(value)
    return text


def _accessor_chain(text: str) -> CallChain | None:
    """Parse text as a bare locator chain such as `getByRole('button')`."""
    if not text or not text[0].isalpha():
        return None
    chain = parse_chain(text)
    if chain.receiver or chain.rest or not chain.segments:
        return None
    if chain.segments[0].name not in ACCESSOR_NAMES or not chain.segments[0].is_call:
        return None
    return chain


def normalize_selector(expression: str) -> str:
    """Normalize a selector expression so equal locators compare equal.

    A quoted string is unquoted, a page receiver such as `page.` is dropped,
    a lone `locator('x')` reduces to `x` and accessor chains are re-rendered
    with single-quoted arguments.
    """
    text = " ".join(expression.split())
    value = string_value(text)
    if value is not None:
        return " ".join(value.split())

    receiver = PAGE_RECEIVER_PATTERN.match(text)
    if receiver and _accessor_chain(text[receiver.end():]) is not None:
        text = text[receiver.end():]

    chain = _accessor_chain(text)
    if chain is None:
        return text

    if len(chain.segments) == 1 and chain.segments[0].name == "locator":
        args = split_top_level(chain.segments[0].args or "")
        inner = string_value(args[0]) if len(args) == 1 else None
        if inner is not None:
            return " ".join(inner.split())

    rendered = []
    for segment in chain.segments:
        if segment.is_call:
            args = ", ".join(_normalize_value(a) for a in split_top_level(segment.args or ""))
            rendered.append(f"{segment.name}({args})")
        else:
            rendered.append(segment.name)
    return ".".join(rendered)


def _strip_attribute_blocks(css: str) -> str:
    return re.sub(r"\[[^\]]*\]|\((?:[^()]|\([^()]*\))*\)", "", css)


def _split_compounds(css: str) -> list[str]:
    """Split a css selector on combinators outside brackets and parentheses."""
    compounds = []
    current = ""
    depth = 0
    quote_char = None
    for char in css:
        if quote_char:
            current += char
            if char == quote_char:
                quote_char = None
            continue
        if char in "'\"":
            quote_char = char
            current += char
        elif char in "[(":
            depth += 1
            current += char
        elif char in "])":
            depth -= 1
            current += char
        elif depth == 0 and (char.isspace() or char in ">+~"):
            if current.strip():
                compounds.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        compounds.append(current.strip())
    return compounds


def parse_css(css: str) -> dict[str, Any]:
    """Extract tag, id, classes, attributes and nesting depth from a css selector."""
    source = css[4:] if css.startswith("css=") else css
    source = source.replace(">>", " ")
    compounds = _split_compounds(source)
    last = compounds[-1] if compounds else ""
    plain_last = _strip_attribute_blocks(last)

    attributes: dict[str, str] = {}
    for match in ATTRIBUTE_PATTERN.finditer(source):
        name = match.group(1)
        value = next((g for g in match.groups()[1:] if g is not None), "")
        attributes.setdefault(name, value)

    details: dict[str, Any] = {}
    tag_match = re.match(r"^([a-zA-Z][\w-]*)", plain_last)
    if tag_match:
        details["tag"] = tag_match.group(1).lower()
    id_match = re.search(r"#([\w-]+)", plain_last)
    if id_match:
        details["id"] = id_match.group(1)
    classes = re.findall(r"\.([\w-]+)", _strip_attribute_blocks(source))
    if classes:
        details["classes"] = classes
    if attributes:
        details["attributes"] = attributes
    pseudo = re.findall(r":([\w-]+)", plain_last)
    if pseudo:
        details["pseudo_classes"] = pseudo
    details["depth"] = max(len(compounds) - 1, 0)
    return details


def parse_xpath(xpath: str) -> dict[str, Any]:
    """Extract attribute predicates, text predicates and depth from an xpath."""
    source = xpath[6:] if xpath.startswith("xpath=") else xpath
    attributes: dict[str, str] = {}
    for match in XPATH_ATTRIBUTE_PATTERN.finditer(source):
        attributes.setdefault(match.group(1), match.group(2) or match.group(3) or "")
    details: dict[str, Any] = {"path": source}
    if attributes:
        details["attributes"] = attributes
    text_match = XPATH_TEXT_PATTERN.search(source)
    if text_match:
        details["text"] = text_match.group(1) or text_match.group(2)
    steps = [s for s in re.split(r"/+", _strip_attribute_blocks(source)) if s.strip("()")]
    if steps:
        tag = re.match(r"^\(?([a-zA-Z][\w-]*)", steps[-1])
        if tag:
            details["tag"] = tag.group(1).lower()
    details["depth"] = max(len(steps) - 1, 0)
    return details


def _first_string_arg(args: str | None) -> str | None:
    parts = split_top_level(args or "")
    return string_value(parts[0]) if parts else None


def _options(args: str | None) -> dict[str, Any]:
    parts = split_top_level(args or "")
    if len(parts) > 1:
        return parse_object_literal(parts[1])
    return {}


def _chain_css_sources(chain: CallChain) -> list[str]:
    sources = []
    for segment in chain.segments:
        if segment.name in ("locator", "frameLocator"):
            value = _first_string_arg(segment.args)
            if value is not None:
                sources.append(value)
    return sources


def _chain_depth(chain: CallChain) -> int:
    steps = [s for s in chain.segments if s.is_call and s.name not in NON_NESTING_STEPS]
    depth = max(len(steps) - 1, 0)
    for source in _chain_css_sources(chain):
        depth += parse_css(source)["depth"]
    return depth


def _with_chain_attributes(details: dict[str, Any], chain: CallChain) -> dict[str, Any]:
    attributes: dict[str, str] = {}
    for source in _chain_css_sources(chain):
        attributes.update(parse_css(source).get("attributes", {}))
    if attributes:
        details["attributes"] = attributes
    details["depth"] = _chain_depth(chain)
    return details


def _classify_chain(raw: str, chain: CallChain) -> Selector:
    by_name = {}
    for segment in chain.segments:
        if segment.is_call:
            by_name[segment.name] = segment
    css_sources = _chain_css_sources(chain)

    if "getByTestId" in by_name:
        value = _first_string_arg(by_name["getByTestId"].args) or ""
        details = _with_chain_attributes({}, chain)
        details["attributes"] = {**details.get("attributes", {}), "data-testid": value}
        return Selector(raw=raw, strategy="testid", structured_details=details)
    for source in css_sources:
        css = parse_css(source).get("attributes", {})
        if any(attr in css for attr in TESTID_ATTRIBUTES):
            return Selector(
                raw=raw, strategy="testid", structured_details=_with_chain_attributes({}, chain)
            )

    if "getByRole" in by_name:
        segment = by_name["getByRole"]
        details: dict[str, Any] = {"role": _first_string_arg(segment.args) or ""}
        options = _options(segment.args)
        if isinstance(options.get("name"), str):
            details["accessible_name"] = options["name"]
        if options.get("exact") is True:
            details["exact"] = True
        return Selector(
            raw=raw, strategy="role", structured_details=_with_chain_attributes(details, chain)
        )

    for accessor, kind in TEXT_ACCESSORS.items():
        if accessor in by_name:
            segment = by_name[accessor]
            details = {"accessor": kind, "text": _first_string_arg(segment.args) or ""}
            if _options(segment.args).get("exact") is True:
                details["exact"] = True
            return Selector(
                raw=raw, strategy="text", structured_details=_with_chain_attributes(details, chain)
            )

    for source in css_sources:
        if source.startswith(XPATH_PREFIXES):
            details = parse_xpath(source)
            details["depth"] = _chain_depth(chain)
            return Selector(raw=raw, strategy="xpath", structured_details=details)

    if "getByPlaceholder" in by_name:
        value = _first_string_arg(by_name["getByPlaceholder"].args) or ""
        details = _with_chain_attributes({}, chain)
        details["attributes"] = {**details.get("attributes", {}), "placeholder": value}
        return Selector(raw=raw, strategy="placeholder", structured_details=details)

    details = {}
    for source in css_sources:
        parsed = parse_css(source)
        for key in ("tag", "id"):
            if key in parsed:
                details[key] = parsed[key]
        if "classes" in parsed:
            details.setdefault("classes", []).extend(parsed["classes"])
        if "pseudo_classes" in parsed:
            details.setdefault("pseudo_classes", []).extend(parsed["pseudo_classes"])
    return Selector(
        raw=raw, strategy="css", structured_details=_with_chain_attributes(details, chain)
    )


def _classify_string(raw: str) -> Selector:
    testid = TESTID_ENGINE_PATTERN.match(raw)
    if testid:
        value = testid.group(2).strip("'\"")
        return Selector(
            raw=raw,
            strategy="testid",
            structured_details={"attributes": {testid.group(1): value}, "depth": 0},
        )

    if raw.startswith(XPATH_PREFIXES):
        return Selector(raw=raw, strategy="xpath", structured_details=parse_xpath(raw))

    css = parse_css(raw)
    attributes = css.get("attributes", {})
    if any(attr in attributes for attr in TESTID_ATTRIBUTES):
        return Selector(raw=raw, strategy="testid", structured_details=css)

    role = ROLE_ENGINE_PATTERN.match(raw)
    if role:
        details: dict[str, Any] = {"role": role.group(1), "depth": 0}
        name = role.group(2) or role.group(3)
        if name:
            details["accessible_name"] = name
        return Selector(raw=raw, strategy="role", structured_details=details)

    text = TEXT_ENGINE_PATTERN.match(raw)
    if text:
        value = text.group(1)
        is_literal, literal = parse_literal(value)
        exact = is_literal and value[0] in "'\""
        details = {"accessor": "text", "text": literal if exact else value, "depth": 0}
        if exact:
            details["exact"] = True
        return Selector(raw=raw, strategy="text", structured_details=details)

    pseudo_text = PSEUDO_TEXT_PATTERN.search(raw)
    if pseudo_text:
        details = dict(css)
        details["accessor"] = "text"
        details["text"] = pseudo_text.group(2) or pseudo_text.group(3) or ""
        if pseudo_text.group(1) == "text-is":
            details["exact"] = True
        return Selector(raw=raw, strategy="text", structured_details=details)

    if set(attributes) == {"placeholder"} and not css.get("classes") and "id" not in css:
        return Selector(raw=raw, strategy="placeholder", structured_details=css)

    return Selector(raw=raw, strategy="css", structured_details=css)


def classify_selector(expression: str) -> Selector:
    """Classify a raw selector expression into one of six strategies.

    Precedence (first match wins): test id, role, text, xpath, placeholder,
    then css as the fallback.

    Args:
        expression: Selector expression as written in the script

    Returns:
        Selector with strategy and structured_details populated (unscored)
    """
    raw = normalize_selector(expression)
    chain = _accessor_chain(raw)
    if chain is not None:
        selector = _classify_chain(raw, chain)
    else:
        selector = _classify_string(raw)
    logger.debug(f"Classified {raw!r} as {selector.strategy}")
    return selector


def selector_root(selector: Selector) -> str | None:
    """Return the scoping prefix of a nested selector, e.g. `#login-form`.

    Selectors without a scope have no root.
    """
    chain = _accessor_chain(selector.raw)
    if chain is not None:
        scoped = [s for s in chain.segments if s.name not in NON_NESTING_STEPS]
        return scoped[0].render() if len(scoped) > 1 else None
    if selector.strategy == "xpath":
        return None
    compounds = _split_compounds(selector.raw.replace(">>", " "))
    return compounds[0] if len(compounds) > 1 else None
