"""Group each page's actions into named method suggestions."""

import logging
import re
from dataclasses import dataclass, field

from pom_analyzer.assertion_classifier import assertion_shape
from pom_analyzer.config import MethodGroupingConfig
from pom_analyzer.locators.classifier import selector_root
from pom_analyzer.locators.fragility import derive_content
from pom_analyzer.models import (
    Action,
    AnalysisWarning,
    Assertion,
    Component,
    MethodSuggestion,
    Page,
    Parameter,
)
from pom_analyzer.naming import camel, safe_method_name, unique_name, words
from pom_analyzer.structure.urls import meaningful_segments

logger = logging.getLogger(__name__)

COMPLEXITY_HIGH_WATER_MARK = 50

COMPLEXITY_WEIGHTS = {
    "action": 5,
    "parameter": 10,
    "branching": 15,
    "repetition": 20,
    "file_upload": 10,
    "multiple_assertions": 15,
    "cross_page": 20,
    "component_delegation": 10,
}

NAME_CONFIDENCE = {
    "explicit": 90,
    "url_context": 75,
    "verb_noun": 65,
    "generic": 50,
}

FILL_VERBS = frozenset(
    {
        "fill",
        "type",
        "pressSequentially",
        "selectOption",
        "check",
        "uncheck",
        "setInputFiles",
        "clear",
    }
)
TERMINAL_VERBS = frozenset({"click", "dblclick", "tap", "press"})
MENU_TRIGGER_TOKENS = frozenset({"menu", "dropdown", "toggle", "trigger", "avatar", "more"})

# Verb -> word used at the start of a method name
VERB_LEXICON = {
    "click": "click",
    "dblclick": "doubleClick",
    "tap": "tap",
    "fill": "fill",
    "type": "type",
    "pressSequentially": "type",
    "press": "press",
    "check": "check",
    "uncheck": "uncheck",
    "setChecked": "toggle",
    "selectOption": "select",
    "hover": "hover",
    "focus": "focus",
    "clear": "clear",
    "setInputFiles": "upload",
    "dragTo": "drag",
    "handleDialog": "handle",
}

# Content that already reads as an action becomes the method name as-is
ACTION_WORDS = frozenset(
    {
        "accept",
        "add",
        "apply",
        "back",
        "buy",
        "cancel",
        "checkout",
        "close",
        "confirm",
        "continue",
        "create",
        "decline",
        "delete",
        "download",
        "edit",
        "go",
        "login",
        "log",
        "logout",
        "next",
        "open",
        "place",
        "proceed",
        "register",
        "remove",
        "reset",
        "save",
        "search",
        "send",
        "show",
        "sign",
        "start",
        "submit",
        "update",
        "upload",
        "view",
    }
)

NOISE_WORDS = frozenset(
    {
        "get",
        "by",
        "role",
        "locator",
        "name",
        "exact",
        "true",
        "false",
        "data",
        "testid",
        "test",
        "id",
        "nth",
        "first",
        "last",
        "css",
        "xpath",
        "div",
        "span",
        "text",
        "has",
        "is",
        "filter",
        "label",
        "placeholder",
    }
)

VERIFY_SUFFIX = {
    "toContainText": "Text",
    "toBeVisible": "Visible",
    "toHaveURL": "Url",
    "toHaveValue": "Value",
    "custom": "",
}


@dataclass
class MethodGroupingResult:
    """Method suggestions keyed by owning page or component id."""

    methods: dict[str, list[MethodSuggestion]]
    warnings: list[AnalysisWarning] = field(default_factory=list)


@dataclass
class _Draft:
    kind: str
    actions: list[Action] = field(default_factory=list)
    assertions: list[Assertion] = field(default_factory=list)
    component_id: str | None = None
    terminated: bool = False

    @property
    def size(self) -> int:
        return len(self.actions) + len(self.assertions)

    @property
    def last_action(self) -> Action | None:
        for action in reversed(self.actions):
            if action.kind != "wait":
                return action
        return None

    @property
    def terminal(self) -> Action | None:
        return self.last_action or (self.actions[-1] if self.actions else None)

    @property
    def lines(self) -> list[int]:
        return [i.line_number for i in [*self.actions, *self.assertions]]


def _same_selector_root(a: Action, b: Action) -> bool:
    if a.selector is None or b.selector is None:
        return False
    if a.selector.raw == b.selector.raw:
        return True
    root = selector_root(a.selector)
    return root is not None and root == selector_root(b.selector)


class _Grouper:
    """Greedy windowing over one owner's items."""

    def __init__(self, config: MethodGroupingConfig):
        self.config = config
        self.drafts: list[_Draft] = []
        self.current: _Draft | None = None
        self.verifications: dict[tuple, _Draft] = {}

    def close(self) -> None:
        if self.current is not None and self.current.size:
            self.drafts.append(self.current)
        self.current = None

    def start(self, kind: str, component_id: str | None = None) -> _Draft:
        self.close()
        self.current = _Draft(kind=kind, component_id=component_id)
        return self.current

    def has_room(self) -> bool:
        return self.current is not None and self.current.size < self.config.max_actions_per_method

    def related(self, action: Action) -> bool:
        """Decide whether action continues the current method."""
        draft = self.current
        last = draft.last_action
        if last is None:
            return True
        if draft.terminated:
            return False
        if last.kind == "navigation":
            return not self.config.separate_navigation
        if _same_selector_root(last, action):
            return True
        if (
            self.config.group_related_fills
            and last.verb in FILL_VERBS
            and action.verb in FILL_VERBS
        ):
            return True
        if last.verb in FILL_VERBS and action.verb in TERMINAL_VERBS:
            draft.terminated = True
            return True
        if last.verb == "hover" and action.verb in TERMINAL_VERBS:
            return True
        if (
            last.verb == "click"
            and action.verb == "click"
            and set(words(last.selector.raw if last.selector else "")) & MENU_TRIGGER_TOKENS
        ):
            return True
        return last.statement.subtype == "dialog"

    def add_assertion(self, assertion: Assertion) -> None:
        if self.config.separate_assertions:
            self.close()
            if assertion.placement_recommendation == "separate_method":
                shape = assertion_shape(assertion)
                draft = self.verifications.setdefault(shape, _Draft(kind="verification"))
                draft.assertions.append(assertion)
            return
        if not self.has_room():
            self.start("actions")
        self.current.assertions.append(assertion)

    def add_action(self, action: Action, component_id: str | None = None) -> None:
        if component_id is not None:
            if not (
                self.current is not None
                and self.current.component_id == component_id
                and self.has_room()
            ):
                self.start("component_delegation", component_id)
            self.current.actions.append(action)
            return

        if action.kind == "navigation":
            self.start("navigation" if self.config.separate_navigation else "actions")
            self.current.actions.append(action)
            if self.config.separate_navigation:
                self.close()
            return

        if action.kind == "wait":
            if not self.has_room():
                self.start("actions")
            self.current.actions.append(action)
            if action.verb == "waitForURL":
                self.close()
            return

        if not (self.has_room() and self.current.kind == "actions" and self.related(action)):
            self.start("actions")
        self.current.actions.append(action)

    def finish(self) -> list[_Draft]:
        self.close()
        drafts = self.drafts + list(self.verifications.values())
        return sorted(drafts, key=lambda d: min(d.lines))


def _merge_parameters(actions: list[Action]) -> list[Parameter]:
    """Deduplicate parameters by normalized name, keeping the first example."""
    merged: dict[str, Parameter] = {}
    for action in actions:
        for parameter in action.parameters:
            key = re.sub(r"[^a-z0-9]", "", parameter.name.lower())
            if key in merged:
                merged[key].action_ids.extend(
                    i for i in parameter.action_ids if i not in merged[key].action_ids
                )
                continue
            merged[key] = Parameter(
                name=parameter.name,
                type=parameter.type,
                example_value=parameter.example_value,
                should_be_parameter=parameter.should_be_parameter,
                source=parameter.source,
                action_ids=list(parameter.action_ids),
            )
    return list(merged.values())


def _selector_noun(action: Action) -> list[str]:
    if action.selector is None:
        return []
    details = action.selector.structured_details
    noun = [w for w in words(action.selector.raw) if w not in NOISE_WORDS and not w.isdigit()]
    if not noun and details.get("role"):
        noun = words(details["role"])
    return noun[-2:]


def _url_words(url: str | None) -> list[str]:
    segments = meaningful_segments(url) if url else []
    return words(segments[-1]) if segments else []


class _Namer:
    """Pick a name by precedence and collect the lower-ranked alternatives."""

    def __init__(self, owner_id: str, url: str | None):
        self.owner_id = owner_id
        self.url = url
        self.taken: set[str] = set()
        self.generic_count = 0

    def candidates(self, draft: _Draft) -> list[tuple[str, str]]:
        found: list[tuple[str, str]] = []
        terminal = draft.terminal
        verb_word = VERB_LEXICON.get(terminal.verb or "", "perform") if terminal else "perform"

        content = derive_content(terminal.selector) if terminal and terminal.selector else None
        content_words = words(content)[:4]
        if content_words:
            if content_words[0] in ACTION_WORDS:
                name = camel(content_words)
            else:
                name = camel([verb_word, *content_words])
            found.append(("explicit", safe_method_name(name, verb_word)))

        url_words = _url_words(self.url)
        if url_words:
            verbs = {a.verb for a in draft.actions}
            if verbs & FILL_VERBS and verbs & TERMINAL_VERBS:
                found.append(("url_context", camel(["submit", *url_words])))
            elif verbs & FILL_VERBS:
                found.append(("url_context", camel(["fill", *url_words, "form"])))
            elif terminal is not None and terminal.kind == "wait":
                found.append(("url_context", camel(["wait", "for", *url_words])))
            else:
                found.append(("url_context", camel([verb_word, *url_words])))

        if terminal is not None:
            noun = _selector_noun(terminal)
            if noun:
                found.append(("verb_noun", safe_method_name(camel([verb_word, *noun]), verb_word)))
            elif terminal.kind == "wait":
                found.append(("verb_noun", camel(words(terminal.verb))))
        return found

    def name(self, draft: _Draft) -> tuple[str, int, list[str], bool]:
        """Return (name, confidence, alternatives, generic)."""
        found = self.candidates(draft)
        unique: list[tuple[str, str]] = []
        for rule, name in found:
            if name and name not in [n for _, n in unique]:
                unique.append((rule, name))

        if unique:
            rule, chosen = unique[0]
            alternatives = [n for _, n in unique[1:]]
            generic = False
            confidence = NAME_CONFIDENCE[rule]
        else:
            self.generic_count += 1
            n = self.generic_count
            chosen = f"performAction{n}"
            terminal = draft.terminal
            verb_word = VERB_LEXICON.get(terminal.verb or "", "do") if terminal else "do"
            alternatives = [f"{verb_word}Step{n}", f"handleStep{n}"]
            generic = True
            confidence = NAME_CONFIDENCE["generic"]

        return unique_name(chosen, self.taken), confidence, alternatives, generic


def _verification_name(draft: _Draft) -> tuple[list[str], bool]:
    assertion = draft.assertions[0]
    if assertion.selector is not None:
        subject = words(derive_content(assertion.selector))[:3]
    elif assertion.type == "toHaveURL" and isinstance(assertion.expected_value, str):
        subject = _url_words(assertion.expected_value)
    else:
        subject = []
    suffix = VERIFY_SUFFIX.get(assertion.type, "")
    return ["verify", *subject, *words(suffix)], bool(subject)


def _complexity(
    draft: _Draft, parameters: list[Parameter], cross_page: bool
) -> tuple[int, list[str]]:
    counts = {"action": len(draft.actions)}
    counts["parameter"] = len([p for p in parameters if p.should_be_parameter])
    contexts = {kind for a in draft.actions for kind in a.statement.block_context}
    signals = []
    if "branch" in contexts:
        signals.append("branching")
    if "loop" in contexts:
        signals.append("repetition")
    if any(a.statement.subtype == "file_upload" for a in draft.actions):
        signals.append("file_upload")
    if len(draft.assertions) >= 2:
        signals.append("multiple_assertions")
    if cross_page:
        signals.append("cross_page")
    if draft.kind == "component_delegation":
        signals.append("component_delegation")
    score = sum(COMPLEXITY_WEIGHTS[k] * v for k, v in counts.items())
    score += sum(COMPLEXITY_WEIGHTS[s] for s in signals)
    return score, signals


def _returns_page(draft: _Draft, page: Page | None, next_page: Page | None) -> str | None:
    if page is None or next_page is None:
        return None
    exit_line = page.exit_event.line_number if page.exit_event.type == "url_change" else None
    for action in draft.actions:
        if action.statement.subtype == "new_tab":
            return next_page.id
        if action.verb == "waitForURL" and action.line_number == exit_line:
            return next_page.id
    return None


def _build(
    drafts: list[_Draft],
    owner_id: str,
    namer: _Namer,
    page: Page | None = None,
    next_page: Page | None = None,
) -> tuple[list[MethodSuggestion], list[AnalysisWarning]]:
    methods = []
    warnings = []
    for draft in drafts:
        generic = False
        if draft.kind == "navigation":
            verb = draft.actions[0].verb or "goto"
            name = unique_name(verb, namer.taken)
            confidence = NAME_CONFIDENCE["explicit"]
            url_words = _url_words(draft.actions[0].statement.target_url)
            alternatives = [camel(["open", *url_words])] if url_words else ["open"]
        elif draft.kind == "verification":
            parts, explicit = _verification_name(draft)
            name = unique_name(camel(parts), namer.taken)
            confidence = NAME_CONFIDENCE["url_context" if explicit else "generic"]
            alternatives = [camel(["expect", *parts[1:]]), camel(["assert", *parts[1:]])]
        else:
            name, confidence, alternatives, generic = namer.name(draft)

        parameters = _merge_parameters(draft.actions)
        returns_page_id = _returns_page(draft, page, next_page)
        complexity, signals = _complexity(draft, parameters, returns_page_id is not None)
        start = min(draft.lines)
        items = [*draft.actions, *draft.assertions]
        end = max(i.statement.end_line or i.line_number for i in items)

        methods.append(
            MethodSuggestion(
                id="",
                owner_id=owner_id,
                name=name,
                name_confidence=confidence,
                kind=draft.kind,
                action_ids=[a.id for a in draft.actions],
                assertion_ids=[a.id for a in draft.assertions],
                alternatives=alternatives,
                parameters=parameters,
                complexity=complexity,
                complexity_signals=signals,
                line_range=(start, end),
                returns_page_id=returns_page_id,
                delegates_to_component_id=draft.component_id,
                generic_name=generic,
            )
        )
        if generic:
            warnings.append(
                AnalysisWarning(
                    code="generic_method_name",
                    message=f"No naming signal for {owner_id} lines {start}-{end}; using {name}",
                    line_numbers=tuple(sorted(draft.lines)),
                )
            )
    return methods, warnings


def group_page(
    page: Page,
    usages: dict[str, str],
    config: MethodGroupingConfig,
    next_page: Page | None = None,
) -> tuple[list[MethodSuggestion], list[AnalysisWarning]]:
    """Group one page's items into method suggestions."""
    grouper = _Grouper(config)
    for item in page.items:
        if isinstance(item, Assertion):
            grouper.add_assertion(item)
        else:
            grouper.add_action(item, usages.get(item.id))
    return _build(grouper.finish(), page.id, _Namer(page.id, page.url), page, next_page)


def group_component(
    component: Component,
    actions_by_id: dict[str, Action],
    config: MethodGroupingConfig,
) -> tuple[list[MethodSuggestion], list[AnalysisWarning]]:
    """Group the actions of a component's first instance into methods."""
    grouper = _Grouper(config)
    for action_id in component.instances[0].action_ids:
        grouper.add_action(actions_by_id[action_id])
    return _build(grouper.finish(), component.id, _Namer(component.id, None))


def suggest_methods(
    pages: list[Page],
    components: list[Component],
    usages: dict[str, str],
    config: MethodGroupingConfig | None = None,
) -> MethodGroupingResult:
    """Suggest methods for every page and component.

    Every page action lands in exactly one method. Ids are assigned
    sequentially, page methods first, then component methods.

    Args:
        pages: Bound pages in source order
        components: Detected components
        usages: Action id -> component id for delegated actions
        config: Method grouping options

    Returns:
        MethodGroupingResult keyed by owner id
    """
    config = config or MethodGroupingConfig()
    methods: dict[str, list[MethodSuggestion]] = {}
    warnings: list[AnalysisWarning] = []

    for index, page in enumerate(pages):
        next_page = pages[index + 1] if index + 1 < len(pages) else None
        page_methods, page_warnings = group_page(page, usages, config, next_page)
        methods[page.id] = page_methods
        warnings.extend(page_warnings)

    actions_by_id = {a.id: a for page in pages for a in page.actions}
    for component in components:
        component_methods, component_warnings = group_component(
            component, actions_by_id, config
        )
        methods[component.id] = component_methods
        warnings.extend(component_warnings)

    count = 0
    for owner_methods in methods.values():
        for method in owner_methods:
            count += 1
            method.id = f"method_{count}"

    logger.info(f"Suggested {count} method(s)")
    return MethodGroupingResult(methods=methods, warnings=warnings)
