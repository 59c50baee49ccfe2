"""Partition the statement sequence into pages using navigation signals."""

import logging
from dataclasses import dataclass, field

from pom_analyzer.config import PageDetectionConfig
from pom_analyzer.locators.classifier import classify_selector
from pom_analyzer.locators.fragility import derive_content
from pom_analyzer.models import AnalysisWarning, BoundaryEvent, PageSegment, Statement
from pom_analyzer.naming import pascal, unique_name, words
from pom_analyzer.structure.urls import (
    is_regex_argument,
    meaningful_segments,
    same_page,
    url_pattern,
)

logger = logging.getLogger(__name__)

CONFIDENCE = {
    "start": 60,
    "navigation": 100,
    "history": 80,
    "url_change": 100,
    "url_change_unknown_origin": 95,
    "page_switch": 80,
    "modal": 65,
    "modal_close": 55,
    "tab": 50,
}

MODAL_TOKENS = frozenset({"modal", "dialog", "alertdialog", "lightbox", "overlay", "drawer"})
TAB_TOKENS = frozenset({"tab", "tabs", "accordion"})
TAB_VERBS = frozenset({"click", "tap", "check"})
HISTORY_VERBS = frozenset({"goBack", "goForward"})


@dataclass
class PageDetectionResult:
    """Ordered page segments plus warnings about uncertain boundaries."""

    segments: list[PageSegment]
    warnings: list[AnalysisWarning] = field(default_factory=list)


@dataclass
class _OpenPage:
    origin: str
    confidence: int
    entry_event: BoundaryEvent
    url: str | None = None
    url_is_regex: bool = False
    page_variable: str | None = None
    name_hint: str | None = None
    host: "_OpenPage | None" = None
    statements: list[Statement] = field(default_factory=list)
    exit_event: BoundaryEvent | None = None
    base_name: str = ""

    @property
    def has_actions(self) -> bool:
        return any(not s.is_structural for s in self.statements)


def _event(statement: Statement, event_type: str) -> BoundaryEvent:
    return BoundaryEvent(
        type=event_type,
        line_number=statement.line_number,
        raw_text=statement.raw_text.strip(),
    )


def _selector_words(statement: Statement) -> set[str]:
    return set(words(statement.selector_expression))


def is_modal_signal(statement: Statement) -> bool:
    """A statement that acts on a modal, dialog or overlay element."""
    return bool(_selector_words(statement) & MODAL_TOKENS)


def is_tab_signal(statement: Statement) -> bool:
    """A click on a tab or accordion header that switches content in place."""
    return statement.action_verb in TAB_VERBS and bool(_selector_words(statement) & TAB_TOKENS)


class _PageDetector:
    """Single forward pass over statements, keeping one open page."""

    def __init__(self, config: PageDetectionConfig):
        self.config = config
        self.pages: list[_OpenPage] = []
        self.history: list[str | None] = []
        self.variable_urls: dict[str, str | None] = {}
        self.current = _OpenPage(
            origin="start",
            confidence=CONFIDENCE["start"],
            entry_event=BoundaryEvent(type="start_of_input"),
        )

    def _open(
        self,
        origin: str,
        event: BoundaryEvent,
        confidence: int | None = None,
        url: str | None = None,
        url_is_regex: bool = False,
        page_variable: str | None = None,
        name_hint: str | None = None,
        host: _OpenPage | None = None,
    ) -> None:
        """Close the current page at event and open the next one.

        A current page without any action is relabeled in place so that no
        empty page is produced.
        """
        if self.current.page_variable:
            self.variable_urls[self.current.page_variable] = self.current.url
        attrs = {
            "origin": origin,
            "confidence": CONFIDENCE[origin] if confidence is None else confidence,
            "entry_event": event,
            "url": url,
            "url_is_regex": url_is_regex,
            "page_variable": page_variable or self.current.page_variable,
            "name_hint": name_hint,
            "host": host,
        }
        if not self.current.has_actions:
            if attrs["host"] is self.current:
                attrs["host"] = None
            for key, value in attrs.items():
                setattr(self.current, key, value)
            if self.pages:
                self.pages[-1].exit_event = event
            return
        self.current.exit_event = event
        self.pages.append(self.current)
        self.current = _OpenPage(**attrs)
        logger.debug(f"Page boundary ({origin}) at line {event.line_number}")

    def _navigate(self, statement: Statement) -> None:
        verb = statement.action_verb
        if verb == "goto":
            regex = is_regex_argument(next(iter(statement.argument_expressions), None))
            self.history.append(statement.target_url)
            self._open(
                "navigation",
                _event(statement, "navigation"),
                url=statement.target_url,
                url_is_regex=regex,
                page_variable=statement.page_variable,
            )
        elif verb in HISTORY_VERBS:
            url = None
            if verb == "goBack" and len(self.history) >= 2:
                self.history.pop()
                url = self.history[-1]
            self._open(
                "history",
                _event(statement, "navigation"),
                url=url,
                page_variable=statement.page_variable,
            )

    def _wait_for_url(self, statement: Statement) -> None:
        target = statement.target_url
        if not self.config.url_change_creates_new_page or target is None:
            return
        regex = is_regex_argument(next(iter(statement.argument_expressions), None))
        if same_page(target, self.current.url, self.config.url_change_threshold, regex):
            return
        origin = "url_change"
        confidence = CONFIDENCE[origin]
        if self.current.url is None:
            confidence = CONFIDENCE["url_change_unknown_origin"]
        event = _event(statement, "url_change")
        if self.current.page_variable:
            self.variable_urls[self.current.page_variable] = target
        self.history.append(target)
        self.current.exit_event = event
        self.pages.append(self.current)
        self.current = _OpenPage(
            origin=origin,
            confidence=confidence,
            entry_event=event,
            url=target,
            url_is_regex=regex,
            page_variable=self.current.page_variable,
        )
        logger.debug(f"Page boundary (url_change) at line {statement.line_number}")

    def _switches_page(self, statement: Statement) -> bool:
        variable = statement.page_variable
        return (
            variable is not None
            and self.current.page_variable is not None
            and variable != self.current.page_variable
        )

    def process(self, statement: Statement) -> None:
        if statement.is_structural:
            self.current.statements.append(statement)
            return
        if self.current.page_variable is None and statement.page_variable:
            self.current.page_variable = statement.page_variable

        if statement.kind == "navigation":
            self._navigate(statement)
            self.current.statements.append(statement)
            return

        modal = is_modal_signal(statement)
        if self._switches_page(statement):
            variable = statement.page_variable
            self._open(
                "page_switch",
                _event(statement, "page_switch"),
                url=self.variable_urls.get(variable),
                page_variable=variable,
                name_hint=variable,
            )
        elif (
            self.config.modal_detection == "page"
            and modal
            and self.current.origin != "modal"
            and statement.subtype != "dialog"
        ):
            self._open(
                "modal",
                _event(statement, "modal_open"),
                url=self.current.url,
                name_hint=statement.selector_expression,
                host=self.current,
            )
        elif (
            self.current.origin == "modal"
            and not modal
            and statement.kind != "wait"
            and statement.subtype != "dialog"
        ):
            host = self.current.host
            self._open(
                "modal_close",
                _event(statement, "modal_close"),
                url=host.url if host else None,
                host=host,
            )
        elif self.config.tab_switch_creates_new_page and is_tab_signal(statement):
            host = self.current.host if self.current.origin == "tab" else self.current
            self._open(
                "tab",
                _event(statement, "tab_switch"),
                url=self.current.url,
                name_hint=statement.selector_expression,
                host=host,
            )

        self.current.statements.append(statement)
        if statement.kind == "wait" and statement.action_verb == "waitForURL":
            self._wait_for_url(statement)

    def finish(self) -> list[_OpenPage]:
        last_line = max(
            (s.end_line or s.line_number for s in self.current.statements),
            default=None,
        )
        self.current.exit_event = BoundaryEvent(type="end_of_input", line_number=last_line)
        self.pages.append(self.current)

        # A trailing page holding only structural statements belongs to its predecessor
        if len(self.pages) > 1 and not self.pages[-1].has_actions:
            trailing = self.pages.pop()
            self.pages[-1].statements.extend(trailing.statements)
            self.pages[-1].exit_event = BoundaryEvent(
                type="end_of_input",
                line_number=max(
                    (s.end_line or s.line_number for s in self.pages[-1].statements),
                    default=None,
                ),
            )
        return self.pages


def _content_words(expression: str | None, ignored: frozenset[str]) -> list[str]:
    if not expression:
        return []
    content = derive_content(classify_selector(expression))
    return [w for w in words(content) if w not in ignored]


def _url_words(page: _OpenPage) -> list[str] | None:
    """Words naming a URL's page, [] for the site root, None when unknown."""
    if page.url is None:
        return None
    if page.url_is_regex:
        return [w for w in words(page.url) if w.isalpha()][-2:]
    segments = meaningful_segments(page.url)
    if not segments:
        return []
    return words(segments[-1])


def _base_name(page: _OpenPage) -> str:
    if page.origin == "modal":
        parts = _content_words(page.name_hint, MODAL_TOKENS)
        if not parts and page.host is not None:
            parts = [w for w in words(page.host.base_name) if w != "page"]
        return pascal(parts or ["main"]) + "Modal"
    if page.origin == "tab":
        parts = _content_words(page.name_hint, TAB_TOKENS)
        if not parts and page.host is not None:
            parts = [w for w in words(page.host.base_name) if w != "page"]
        return pascal(parts or ["main"]) + "Tab"
    if page.origin == "modal_close" and page.host is not None:
        return page.host.base_name

    parts = _url_words(page)
    if parts == []:
        return "HomePage"
    if parts is None and page.origin == "page_switch" and page.name_hint:
        parts = words(page.name_hint.split(".")[-1])
    if not parts:
        return "MainPage"
    if parts[-1] == "page":
        parts = parts[:-1] or ["main"]
    return pascal(parts) + "Page"


def detect_pages(
    statements: list[Statement],
    config: PageDetectionConfig | None = None,
) -> PageDetectionResult:
    """Partition statements into contiguous page segments.

    Every statement lands in exactly one segment. The statement that opens a
    page is also the exit event of the page before it.

    Args:
        statements: Extracted statements in source order
        config: Page detection options

    Returns:
        PageDetectionResult with named segments and warnings
    """
    config = config or PageDetectionConfig()
    detector = _PageDetector(config)
    for statement in statements:
        detector.process(statement)
    open_pages = detector.finish()

    warnings: list[AnalysisWarning] = []
    if len(open_pages) == 1 and open_pages[0].origin == "start":
        lines = tuple(s.line_number for s in open_pages[0].statements if not s.is_structural)
        warnings.append(
            AnalysisWarning(
                code="uncertain_page_boundaries",
                message=(
                    "No navigation or URL change found; the whole script is treated as "
                    "one page"
                ),
                line_numbers=lines[:1],
            )
        )
        logger.warning("No page boundaries found, using a single page")

    taken: set[str] = set()
    segments = []
    for page in open_pages:
        page.base_name = _base_name(page)
        segments.append(
            PageSegment(
                statements=page.statements,
                confidence=page.confidence,
                entry_event=page.entry_event,
                exit_event=page.exit_event,
                origin=page.origin,
                url=page.url,
                url_pattern=url_pattern(page.url, regex=page.url_is_regex),
                page_variable=page.page_variable,
                inferred_name=unique_name(page.base_name, taken),
            )
        )

    logger.info(f"Detected {len(segments)} page(s)")
    return PageDetectionResult(segments=segments, warnings=warnings)
