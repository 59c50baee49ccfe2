"""Extract ordered statements from Playwright test script text."""

import logging
import re
from dataclasses import dataclass, field, replace

from pom_analyzer.extractor.call_parser import (
    CallChain,
    CallSegment,
    brace_delta,
    bracket_depth_delta,
    has_multiple_statements,
    parse_chain,
    parse_literal,
    render_segments,
    split_top_level,
    string_value,
    strip_line_comment,
)
from pom_analyzer.models import Statement

logger = logging.getLogger(__name__)

NAVIGATION_VERBS = frozenset({"goto", "goBack", "goForward", "reload"})

WAIT_VERBS = frozenset(
    {
        "waitForURL",
        "waitForTimeout",
        "waitForLoadState",
        "waitForSelector",
        "waitForResponse",
        "waitForRequest",
        "waitForNavigation",
        "waitForFunction",
    }
)

INTERACTION_VERBS = frozenset(
    {
        "click",
        "dblclick",
        "fill",
        "type",
        "pressSequentially",
        "press",
        "check",
        "uncheck",
        "setChecked",
        "selectOption",
        "selectText",
        "hover",
        "focus",
        "blur",
        "clear",
        "setInputFiles",
        "dragTo",
        "dragAndDrop",
        "tap",
        "scrollIntoViewIfNeeded",
        "dispatchEvent",
    }
)

QUERY_VERBS = frozenset(
    {
        "textContent",
        "innerText",
        "innerHTML",
        "inputValue",
        "getAttribute",
        "isVisible",
        "isHidden",
        "isEnabled",
        "isDisabled",
        "isChecked",
        "isEditable",
        "count",
        "all",
        "allTextContents",
        "allInnerTexts",
        "boundingBox",
        "title",
        "url",
        "content",
        "screenshot",
        "evaluate",
        "evaluateAll",
        "pause",
        "setViewportSize",
    }
)

LOCATOR_ACCESSORS = frozenset(
    {
        "locator",
        "getByRole",
        "getByText",
        "getByTestId",
        "getByPlaceholder",
        "getByLabel",
        "getByAltText",
        "getByTitle",
        "frameLocator",
        "contentFrame",
        "nth",
        "first",
        "last",
        "filter",
        "and",
        "or",
    }
)

# Page-level calls whose first argument is a selector string
SELECTOR_FIRST_VERBS = frozenset(
    {
        "click",
        "dblclick",
        "fill",
        "type",
        "press",
        "check",
        "uncheck",
        "selectOption",
        "hover",
        "focus",
        "tap",
        "setInputFiles",
        "dispatchEvent",
        "waitForSelector",
        "textContent",
        "innerText",
        "innerHTML",
        "inputValue",
        "getAttribute",
        "isVisible",
        "isHidden",
        "isEnabled",
        "isDisabled",
        "isChecked",
        "isEditable",
    }
)

CONTEXT_NAMES = frozenset({"context", "browserContext"})
PAGE_NAME_PATTERN = re.compile(r"(^page$|Page$|^popup$|Popup$)")
TEST_TITLE_PATTERN = re.compile(
    r"^(?:test|it)(?:\.(?:only|skip|fixme|fail|slow))?\s*\(\s*(['\"`])(.*?)\1"
)
DESCRIBE_PATTERN = re.compile(r"^(?:test\.)?describe(?:\.\w+)?\s*\(")
HOOK_PATTERN = re.compile(r"^(?:test\.)?(?:beforeEach|afterEach|beforeAll|afterAll)\s*\(")
BRANCH_PATTERN = re.compile(r"^(?:\}\s*)?(?:if|else|switch|try|catch|finally)\b")
LOOP_PATTERN = re.compile(r"^(?:for|while|do)\b|\.forEach\s*\(")
BLOCK_OPENER_PATTERN = re.compile(r"(=>|\)|\belse|\btry|\bdo|\bfinally)\s*\{$")
ASSIGNMENT_PATTERN = re.compile(
    r"^(?:const|let|var)\s+(\[[^\]]*\]|\{[^}]*\}|[A-Za-z_$][\w$]*)\s*(?::\s*[\w<>\[\]., ]+)?=\s*(.*)$"
)
TIMEOUT_OPTION_PATTERN = re.compile(r"\btimeout\s*:\s*(\d+)")
POPUP_EVENT_PATTERN = re.compile(r"waitForEvent\s*\(\s*['\"](popup|page)['\"]")
FILECHOOSER_PATTERN = re.compile(r"waitForEvent\s*\(\s*['\"]filechooser['\"]")

MAX_STATEMENT_LINES = 60


class ScriptParseError(Exception):
    """The script contains nothing that can be analyzed."""

    def __init__(self, message: str, phase: str = "extraction"):
        super().__init__(message)
        self.phase = phase


@dataclass
class _ExtractionState:
    """Per-script bookkeeping while statements are classified."""

    page_variables: set[str] = field(default_factory=lambda: {"page", "this.page"})
    bindings: dict[str, tuple[str, str | None]] = field(default_factory=dict)
    blocks: list[str] = field(default_factory=list)


def _is_block_opener(text: str) -> bool:
    return bool(BLOCK_OPENER_PATTERN.search(text.rstrip()))


def _logical_statements(text: str) -> list[tuple[int, int, str]]:
    """Join physical lines into logical statements.

    Returns:
        List of (start_line, end_line, joined_text), 1-based
    """
    lines = text.splitlines()
    statements = []
    i = 0

    while i < len(lines):
        stripped = lines[i].strip()
        if not stripped:
            i += 1
            continue
        start = i

        if stripped.startswith("/*"):
            while "*/" not in lines[i] and i < len(lines) - 1:
                i += 1
            joined = " ".join(line.strip() for line in lines[start : i + 1])
            statements.append((start + 1, i + 1, joined))
            i += 1
            continue

        if stripped.startswith("//"):
            statements.append((start + 1, start + 1, stripped))
            i += 1
            continue

        parts = [strip_line_comment(stripped)]
        depth = bracket_depth_delta(parts[0])

        while not _is_block_opener(" ".join(parts)) and i - start < MAX_STATEMENT_LINES:
            j = i + 1
            while j < len(lines) and (
                not lines[j].strip() or lines[j].strip().startswith("//")
            ):
                j += 1
            if j >= len(lines):
                break
            following = lines[j].strip()
            if depth > 0 or following.startswith(".") or following.startswith("?."):
                part = strip_line_comment(following)
                parts.append(part)
                depth += bracket_depth_delta(part)
                i = j
            else:
                break

        statements.append((start + 1, i + 1, " ".join(parts)))
        i += 1

    return statements


def _strip_prefixes(text: str) -> str:
    text = text.strip().rstrip(";").strip()
    for prefix in ("return ", "await "):
        if text.startswith(prefix):
            text = text[len(prefix) :].strip()
    return text


def _structural_role(text: str) -> str | None:
    if text.startswith(("//", "/*", "*")):
        return "comment"
    if text.startswith(("import ", "export ")) or re.match(r"^(const|let|var)\s.*require\(", text):
        return "import"
    if TEST_TITLE_PATTERN.match(text):
        return "test_declaration"
    if DESCRIBE_PATTERN.match(text):
        return "describe"
    if HOOK_PATTERN.match(text):
        return "hook"
    if BRANCH_PATTERN.match(text):
        return "branch"
    if LOOP_PATTERN.search(text) and _is_block_opener(text):
        return "loop"
    if text.startswith("}") or text in (")", ");", "])", "]);"):
        return "block_close"
    return None


def _block_kind(statement: Statement) -> str:
    role = statement.structural_role
    return {
        "test_declaration": "test",
        "describe": "describe",
        "hook": "hook",
        "branch": "branch",
        "loop": "loop",
    }.get(role or "", "callback")


def _receiver_name(receiver: tuple[str, ...]) -> str | None:
    """Name of the variable a receiver path starts from (`this.x` kept whole)."""
    if not receiver:
        return None
    if receiver[0] == "this" and len(receiver) > 1:
        return f"this.{receiver[1]}"
    return receiver[0]


def _page_variable(receiver: tuple[str, ...], state: _ExtractionState) -> str | None:
    """Return the page variable a receiver path starts from, if any."""
    name = _receiver_name(receiver)
    if name is None:
        return None
    if name in state.bindings:
        return state.bindings[name][1]
    if name in state.page_variables or PAGE_NAME_PATTERN.search(name.split(".")[-1]):
        return name
    return None


def _split_locator_chain(
    chain: CallChain, state: _ExtractionState
) -> tuple[str | None, list[CallSegment]]:
    """Separate the locator part of a chain from the trailing action.

    Returns:
        Tuple of (selector expression or None, remaining segments)
    """
    segments = list(chain.segments)
    locator_segments: list[CallSegment] = []
    while segments and segments[0].name in LOCATOR_ACCESSORS and (
        len(segments) > 1 or segments[0].is_call
    ):
        locator_segments.append(segments.pop(0))

    name = _receiver_name(chain.receiver)
    bound = state.bindings[name][0] if name in state.bindings else None

    parts = [bound] if bound else []
    if locator_segments:
        parts.append(render_segments(locator_segments))
    selector = ".".join(parts) if parts else None
    return selector, segments


def _literals(args: list[str]) -> tuple:
    values = []
    for arg in args:
        is_literal, value = parse_literal(arg)
        if is_literal:
            values.append(value)
    return tuple(values)


def _timeout(args_text: str | None) -> int | None:
    if not args_text:
        return None
    match = TIMEOUT_OPTION_PATTERN.search(args_text)
    return int(match.group(1)) if match else None


def _make(start: int, end: int, raw: str, kind: str, **fields) -> Statement:
    return Statement(line_number=start, end_line=end, raw_text=raw, kind=kind, **fields)


def _classify_assertion(
    chain: CallChain, start: int, end: int, raw: str, state: _ExtractionState
) -> Statement:
    # expect(subject) and expect.soft(subject) both carry the subject first
    segments = list(chain.segments)
    subject_args = split_top_level(segments[0].args or "")
    subject = subject_args[0] if subject_args else ""

    matcher_segment = chain.last_call
    matcher = matcher_segment.name if matcher_segment else "unknown"
    if matcher_segment is segments[0]:
        matcher = "unknown"
    negated = any(s.name == "not" and not s.is_call for s in segments)
    matcher_args = split_top_level(matcher_segment.args or "") if matcher_segment else []

    selector = None
    subject_chain = parse_chain(subject)
    page_variable = _page_variable(subject_chain.receiver, state)
    if _receiver_name(subject_chain.receiver) in state.bindings or (
        page_variable and subject_chain.segments
    ):
        selector, _ = _split_locator_chain(subject_chain, state)

    target_url = None
    if matcher == "toHaveURL" and matcher_args:
        target_url = string_value(matcher_args[0]) or matcher_args[0]

    return _make(
        start,
        end,
        raw,
        "assertion",
        action_verb=matcher,
        selector_expression=selector,
        literal_arguments=_literals(matcher_args),
        argument_expressions=tuple(matcher_args),
        target_url=target_url,
        negated=negated,
        page_variable=page_variable,
        timeout_ms=_timeout(matcher_segment.args if matcher_segment else None),
    )


def _classify_call(
    body: str, start: int, end: int, raw: str, state: _ExtractionState
) -> Statement | None:
    """Classify a statement body that is a call chain, or return None."""
    chain = parse_chain(body)
    if not chain.segments:
        return None

    if (not chain.receiver and chain.segments[0].name == "expect") or (
        chain.receiver == ("expect",)
    ):
        return _classify_assertion(chain, start, end, raw, state)

    if chain.receiver and chain.receiver[0] in CONTEXT_NAMES:
        last = chain.last_call
        if last and (last.name == "newPage" or POPUP_EVENT_PATTERN.search(body)):
            return _make(start, end, raw, "interaction", action_verb=last.name, subtype="new_tab")
        return None

    page_variable = _page_variable(chain.receiver, state)
    selector, remaining = _split_locator_chain(chain, state)
    if page_variable is None and selector is None:
        return None

    calls = [s for s in remaining if s.is_call]
    if not calls:
        return None
    action = calls[-1]
    verb = action.name
    args = split_top_level(action.args or "")
    sub_receiver = chain.receiver[-1] if len(chain.receiver) > 1 else None

    fields = {
        "action_verb": verb,
        "page_variable": page_variable,
        "timeout_ms": _timeout(action.args),
    }

    if sub_receiver in ("keyboard", "mouse"):
        return _make(
            start,
            end,
            raw,
            "interaction",
            subtype=sub_receiver,
            literal_arguments=_literals(args),
            argument_expressions=tuple(args),
            **fields,
        )

    if selector is None and verb in SELECTOR_FIRST_VERBS and args:
        selector = args[0]
        args = args[1:]

    if verb in NAVIGATION_VERBS and selector is None:
        target = None
        if verb == "goto" and args:
            target = string_value(args[0]) or args[0]
        return _make(
            start,
            end,
            raw,
            "navigation",
            target_url=target,
            literal_arguments=_literals(args),
            argument_expressions=tuple(args),
            **fields,
        )

    if verb in WAIT_VERBS:
        target = None
        if verb == "waitForURL" and args:
            target = string_value(args[0]) or args[0]
        return _make(
            start,
            end,
            raw,
            "wait",
            selector_expression=selector,
            target_url=target,
            literal_arguments=_literals(args),
            argument_expressions=tuple(args),
            **fields,
        )

    subtype = None
    if verb in ("on", "once") and args:
        event = string_value(args[0])
        if event == "dialog":
            subtype = "dialog"
            fields["action_verb"] = "handleDialog"
        elif event == "popup":
            subtype = "new_tab"
        else:
            subtype = "custom"
        args = args[:1]
    elif verb == "waitForEvent":
        if FILECHOOSER_PATTERN.search(body):
            subtype = "file_upload"
        elif POPUP_EVENT_PATTERN.search(body):
            subtype = "new_tab"
        else:
            subtype = "custom"
    elif verb == "setInputFiles":
        subtype = "file_upload"
    elif verb == "bringToFront":
        subtype = "tab_switch"
    elif verb in INTERACTION_VERBS:
        subtype = None
    elif verb in QUERY_VERBS:
        subtype = "query"
    else:
        subtype = "custom"

    return _make(
        start,
        end,
        raw,
        "interaction",
        selector_expression=selector,
        subtype=subtype,
        literal_arguments=_literals(args),
        argument_expressions=tuple(args),
        **fields,
    )


def _classify_assignment(
    target: str, value: str, start: int, end: int, raw: str, state: _ExtractionState
) -> Statement | None:
    """Classify `const x = ...`, recording locator and page bindings."""
    value = _strip_prefixes(value)

    if value.startswith("Promise.all"):
        if POPUP_EVENT_PATTERN.search(value):
            for name in re.findall(r"[A-Za-z_$][\w$]*", target.strip("[]{}"))[:1]:
                state.page_variables.add(name)
            return _make(
                start, end, raw, "interaction", action_verb="waitForEvent", subtype="new_tab"
            )
        if FILECHOOSER_PATTERN.search(value):
            return _make(
                start, end, raw, "interaction", action_verb="waitForEvent", subtype="file_upload"
            )
        return None

    chain = parse_chain(value)
    if chain.receiver and chain.receiver[0] in CONTEXT_NAMES:
        if chain.last_call and chain.last_call.name == "newPage":
            state.page_variables.add(target)
        statement = _classify_call(value, start, end, raw, state)
        return statement

    page_variable = _page_variable(chain.receiver, state)
    bound = _receiver_name(chain.receiver) in state.bindings
    if (page_variable or bound) and chain.segments and all(
        s.name in LOCATOR_ACCESSORS for s in chain.segments
    ):
        selector, _ = _split_locator_chain(chain, state)
        if selector and not target.startswith(("[", "{")):
            state.bindings[target] = (selector, page_variable)
            logger.debug(f"Bound locator {target} -> {selector}")
        return _make(
            start,
            end,
            raw,
            "structural",
            structural_role="locator_declaration",
            selector_expression=selector,
            page_variable=page_variable,
        )

    return _classify_call(value, start, end, raw, state)


def _classify(start: int, end: int, raw: str, state: _ExtractionState) -> Statement:
    text = raw.strip()
    role = _structural_role(text)
    if role is not None:
        title = None
        if role == "test_declaration":
            title = TEST_TITLE_PATTERN.match(text).group(2)
        return _make(start, end, raw, "structural", structural_role=role, title=title)

    body = _strip_prefixes(text)
    assignment = ASSIGNMENT_PATTERN.match(body)
    if assignment:
        statement = _classify_assignment(
            assignment.group(1), assignment.group(2), start, end, raw, state
        )
    else:
        statement = _classify_call(body, start, end, raw, state)

    if statement is None:
        role = "expression" if parse_chain(body).segments else "code"
        return _make(start, end, raw, "structural", structural_role=role)
    return statement


def _update_blocks(statement: Statement, state: _ExtractionState) -> None:
    """Track enclosing blocks from the statement's net curly braces."""
    text = statement.raw_text.strip()
    if statement.structural_role == "comment":
        return
    if text.startswith("}"):
        if state.blocks:
            state.blocks.pop()
        text = text[1:]
    delta = brace_delta(text)
    if delta > 0 and _is_block_opener(text):
        state.blocks.append(_block_kind(statement))
    elif delta < 0:
        for _ in range(min(-delta, len(state.blocks))):
            state.blocks.pop()


def extract_statements(text: str) -> list[Statement]:
    """Parse script text into an ordered list of statements.

    Args:
        text: Raw Playwright test script

    Returns:
        Statements in source order; unrecognized lines become structural

    Raises:
        ScriptParseError: If the script has no navigation, interaction, wait or
            assertion statement at all
    """
    state = _ExtractionState()
    statements: list[Statement] = []

    for start, end, raw in _logical_statements(text):
        context = tuple(state.blocks)
        statement = _classify(start, end, raw, state)
        updates = {"block_context": context}
        if not statement.is_structural and has_multiple_statements(raw):
            updates["multi_statement"] = True
        statement = replace(statement, **updates)
        _update_blocks(statement, state)
        statements.append(statement)
        logger.debug(
            f"Line {statement.line_number}: {statement.kind} "
            f"{statement.action_verb or statement.structural_role}"
        )

    recognized = [s for s in statements if not s.is_structural]
    if not recognized:
        logger.error("No recognizable statements found in script")
        raise ScriptParseError("No navigation, interaction, wait or assertion statements found")

    logger.info(
        f"Extracted {len(statements)} statements ({len(recognized)} recognized)"
    )
    return statements
