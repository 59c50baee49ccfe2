"""Parse JavaScript call chains, arguments and literals."""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_$][\w$]*")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")
REGEX_LITERAL_PATTERN = re.compile(r"^/.+/[dgimsuy]*$")

OPENERS = "([{"
CLOSERS = ")]}"


@dataclass(frozen=True)
class CallSegment:
    """One `.name(args)` call or `.name` property step of a chain."""

    name: str
    args: str | None = None  # None for a property access

    @property
    def is_call(self) -> bool:
        return self.args is not None

    def render(self) -> str:
        if self.args is None:
            return self.name
        return f"{self.name}({self.args})"


@dataclass(frozen=True)
class CallChain:
    """A parsed expression such as `page.getByRole('button').click()`."""

    receiver: tuple[str, ...]
    segments: tuple[CallSegment, ...]
    rest: str = ""

    @property
    def calls(self) -> list[CallSegment]:
        return [s for s in self.segments if s.is_call]

    @property
    def last_call(self) -> CallSegment | None:
        calls = self.calls
        return calls[-1] if calls else None


def _scan(text: str) -> Iterator[tuple[int, str, bool]]:
    """Yield (index, char, inside_string) for each character."""
    quote = None
    escaped = False
    for idx, char in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            yield idx, char, True
            continue
        if char in "'\"`":
            quote = char
            yield idx, char, True
            continue
        yield idx, char, False


def bracket_depth_delta(text: str) -> int:
    """Net count of opened brackets of any kind outside string literals."""
    depth = 0
    for _, char, in_string in _scan(text):
        if in_string:
            continue
        if char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1
    return depth


def brace_delta(text: str) -> int:
    """Net count of opened curly braces outside string literals."""
    depth = 0
    for _, char, in_string in _scan(text):
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
    return depth


def find_matching(text: str, open_index: int) -> int:
    """Return the index of the bracket closing the one at open_index, or -1."""
    depth = 0
    for idx, char, in_string in _scan(text):
        if idx < open_index or in_string:
            continue
        if char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1
            if depth == 0:
                return idx
    return -1


def strip_line_comment(line: str) -> str:
    """Remove a trailing `//` comment that is not inside a string."""
    previous = ""
    for idx, char, in_string in _scan(line):
        if not in_string and char == "/" and previous == "/":
            if idx >= 2 and line[idx - 2] == "\\":
                previous = char
                continue
            return line[: idx - 1].rstrip()
        previous = "" if in_string else char
    return line


def has_multiple_statements(text: str) -> bool:
    """Check for a top-level `;` followed by more code."""
    depth = 0
    for idx, char, in_string in _scan(text):
        if in_string:
            continue
        if char in OPENERS:
            depth += 1
        elif char in CLOSERS:
            depth -= 1
        elif char == ";" and depth == 0:
            remainder = text[idx + 1 :].strip()
            if remainder and not remainder.startswith("//"):
                return True
    return False


def split_top_level(args_str: str, separator: str = ",") -> list[str]:
    """Split an argument string on separators outside nested structures."""
    if not args_str.strip():
        return []

    arguments = []
    current = ""
    depth = 0

    for _, char, in_string in _scan(args_str):
        if in_string:
            current += char
        elif char in OPENERS:
            depth += 1
            current += char
        elif char in CLOSERS:
            depth -= 1
            current += char
        elif char == separator and depth == 0:
            if current.strip():
                arguments.append(current.strip())
            current = ""
        else:
            current += char

    if current.strip():
        arguments.append(current.strip())

    return arguments


def _skip_whitespace(text: str, idx: int) -> int:
    while idx < len(text) and text[idx].isspace():
        idx += 1
    return idx


def parse_chain(expression: str) -> CallChain:
    """Parse a member/call chain from the start of an expression.

    Property names before the first call form the receiver; everything after
    is a sequence of call and property segments. Parsing stops at the first
    token that does not continue the chain.
    """
    text = expression.strip()
    idx = 0
    receiver: list[str] = []
    segments: list[CallSegment] = []

    while idx < len(text):
        match = IDENTIFIER_PATTERN.match(text, idx)
        if not match:
            break
        name = match.group()
        idx = _skip_whitespace(text, match.end())

        if idx < len(text) and text[idx] == "(":
            close = find_matching(text, idx)
            if close == -1:
                segments.append(CallSegment(name, text[idx + 1 :].strip()))
                idx = len(text)
                break
            segments.append(CallSegment(name, text[idx + 1 : close].strip()))
            idx = close + 1
        elif segments:
            segments.append(CallSegment(name))
        else:
            receiver.append(name)

        idx = _skip_whitespace(text, idx)
        if text.startswith("?.", idx):
            idx = _skip_whitespace(text, idx + 2)
        elif idx < len(text) and text[idx] == ".":
            idx = _skip_whitespace(text, idx + 1)
        else:
            break

    return CallChain(
        receiver=tuple(receiver),
        segments=tuple(segments),
        rest=text[idx:].strip(),
    )


def render_segments(segments: list[CallSegment] | tuple[CallSegment, ...]) -> str:
    """Render chain segments back to source form."""
    return ".".join(s.render() for s in segments)


def _is_single_string(text: str) -> bool:
    """True when the whole text is exactly one quoted string literal."""
    if len(text) < 2 or text[0] not in "'\"`":
        return False
    for idx, char, in_string in _scan(text):
        if idx == 0:
            continue
        if not in_string:
            return False
        if char == text[0] and idx == len(text) - 1:
            return True
    return False


def _unescape(value: str) -> str:
    return (
        value.replace("\\'", "'")
        .replace('\\"', '"')
        .replace("\\`", "`")
        .replace("\\n", "\n")
        .replace("\\\\", "\\")
    )


def parse_literal(arg: str) -> tuple[bool, Any]:
    """Parse a literal argument.

    Returns:
        Tuple of (is_literal, value). Regex literals are kept as source text,
        arrays of literals become tuples.
    """
    text = arg.strip()
    if _is_single_string(text):
        if text[0] == "`" and "${" in text:
            return False, None
        return True, _unescape(text[1:-1])
    if NUMBER_PATTERN.match(text):
        return True, float(text) if "." in text else int(text)
    if text in ("true", "false"):
        return True, text == "true"
    if text in ("null", "undefined"):
        return True, None
    if REGEX_LITERAL_PATTERN.match(text):
        return True, text
    if text.startswith("[") and text.endswith("]"):
        values = []
        for item in split_top_level(text[1:-1]):
            is_literal, value = parse_literal(item)
            if not is_literal:
                return False, None
            values.append(value)
        return True, tuple(values)
    return False, None


def string_value(arg: str | None) -> str | None:
    """Return the value of a string literal argument, else None."""
    if arg is None:
        return None
    is_literal, value = parse_literal(arg)
    if is_literal and isinstance(value, str):
        return value
    return None


def parse_object_literal(text: str) -> dict[str, Any]:
    """Parse a flat `{ key: value }` literal.

    Literal values are decoded; anything else is kept as source text.
    """
    body = text.strip()
    if not (body.startswith("{") and body.endswith("}")):
        return {}
    result: dict[str, Any] = {}
    for entry in split_top_level(body[1:-1]):
        key_value = split_top_level(entry, separator=":")
        if len(key_value) < 2:
            continue
        key = key_value[0].strip().strip("'\"")
        raw_value = ":".join(key_value[1:]).strip()
        is_literal, value = parse_literal(raw_value)
        result[key] = value if is_literal else raw_value
    return result


def quote(value: str) -> str:
    """Render a value as a single-quoted JavaScript string."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return f"'{escaped}'"
