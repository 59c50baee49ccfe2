"""Data models for the script analysis pipeline and its output document."""

import json
from dataclasses import asdict, dataclass, field
from typing import Any

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class Statement:
    """One logical statement of the input script."""

    line_number: int
    kind: str  # "navigation", "interaction", "wait", "assertion", "structural"
    raw_text: str
    action_verb: str | None = None
    selector_expression: str | None = None
    literal_arguments: tuple = ()
    target_url: str | None = None
    subtype: str | None = None
    structural_role: str | None = None
    argument_expressions: tuple[str, ...] = ()
    page_variable: str | None = None
    block_context: tuple[str, ...] = ()
    end_line: int | None = None
    timeout_ms: int | None = None
    negated: bool = False
    multi_statement: bool = False
    title: str | None = None  # test title for test declarations

    @property
    def is_structural(self) -> bool:
        return self.kind == "structural"


@dataclass(frozen=True)
class ImprovementCandidate:
    """A suggested replacement for a fragile selector."""

    strategy: str
    rendered_selector: str | None
    rationale: str
    actionable: bool = True


@dataclass(frozen=True)
class Selector:
    """A classified and scored locator expression."""

    raw: str
    strategy: str  # "testid", "role", "text", "css", "xpath", "placeholder"
    structured_details: dict[str, Any] = field(default_factory=dict)
    fragility_score: int = 0
    fragility_signals: tuple[str, ...] = ()
    improvement_candidates: tuple[ImprovementCandidate, ...] = ()


@dataclass
class Parameter:
    """A value an action receives that a page object method should accept."""

    name: str
    type: str  # "string", "number", "boolean", "file", "key", "option"
    example_value: Any = None
    should_be_parameter: bool = True
    source: str = "literal"  # "literal" or "variable"
    action_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class WaitBehavior:
    """How an action waits for the application."""

    strategy: str  # "auto", "url", "selector", "load_state", "fixed_timeout", "network", "event"
    timeout_ms: int | None = None
    anti_pattern: bool = False


@dataclass(frozen=True)
class BoundaryEvent:
    """The statement (or synthetic marker) that opens or closes a page."""

    type: str
    line_number: int | None = None
    raw_text: str | None = None


@dataclass
class Action:
    """A non-assertion statement owned by a page."""

    id: str
    page_id: str
    statement: Statement
    wait_behavior: WaitBehavior
    selector: Selector | None = None
    parameters: list[Parameter] = field(default_factory=list)

    @property
    def line_number(self) -> int:
        return self.statement.line_number

    @property
    def verb(self) -> str | None:
        return self.statement.action_verb

    @property
    def kind(self) -> str:
        return self.statement.kind


@dataclass
class Assertion:
    """An assertion statement owned by a page."""

    id: str
    page_id: str
    statement: Statement
    type: str  # "toContainText", "toHaveURL", "toBeVisible", "toHaveValue", "custom"
    matcher: str
    negated: bool = False
    selector: Selector | None = None
    expected_value: Any = None
    placement_recommendation: str = "in_test"
    placement_reason: str | None = None

    @property
    def line_number(self) -> int:
        return self.statement.line_number


@dataclass
class PageSegment:
    """A contiguous run of statements bounded by navigation events."""

    statements: list[Statement]
    confidence: int
    entry_event: BoundaryEvent
    exit_event: BoundaryEvent
    origin: str  # "start", "navigation", "url_change", "page_switch", "modal", "modal_close", "tab"
    url: str | None = None
    url_pattern: str | None = None
    page_variable: str | None = None
    inferred_name: str = ""


@dataclass
class Page:
    """A page segment with its statements bound into actions and assertions."""

    id: str
    inferred_name: str
    confidence: int
    entry_event: BoundaryEvent
    exit_event: BoundaryEvent
    origin: str
    url: str | None
    url_pattern: str | None
    page_variable: str | None
    statements: list[Statement]
    actions: list[Action] = field(default_factory=list)
    assertions: list[Assertion] = field(default_factory=list)

    @property
    def items(self) -> list[Action | Assertion]:
        """Actions and assertions in source order."""
        return sorted(self.actions + self.assertions, key=lambda item: item.line_number)

    @property
    def structural_lines(self) -> list[int]:
        return [s.line_number for s in self.statements if s.is_structural]

    @property
    def line_range(self) -> tuple[int, int]:
        return (
            self.statements[0].line_number,
            max(s.end_line or s.line_number for s in self.statements),
        )


@dataclass
class ComponentInstance:
    """One occurrence of a component's pattern on a page."""

    page_id: str
    action_ids: list[str]


@dataclass
class Component:
    """A recurring fragment of actions across pages."""

    id: str
    inferred_name: str
    type: str  # "header", "footer", "modal", "navigation", "form", "custom"
    confidence: int
    instances: list[ComponentInstance]
    selector_templates: list[dict[str, Any]]
    exact_match: bool = True
    provisional: bool = False

    @property
    def appears_on_page_ids(self) -> list[str]:
        return [instance.page_id for instance in self.instances]

    @property
    def appearance_count(self) -> int:
        return len(self.instances)


@dataclass
class MethodSuggestion:
    """A named group of consecutive actions forming one logical operation."""

    id: str
    owner_id: str
    name: str
    name_confidence: int
    kind: str  # "actions", "navigation", "component_delegation", "verification"
    action_ids: list[str] = field(default_factory=list)
    assertion_ids: list[str] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    complexity: int = 0
    complexity_signals: list[str] = field(default_factory=list)
    line_range: tuple[int, int] = (0, 0)
    returns_page_id: str | None = None
    delegates_to_component_id: str | None = None
    generic_name: bool = False


@dataclass(frozen=True)
class AnalysisWarning:
    """A non-fatal ambiguity recorded in the output metadata."""

    code: str
    message: str
    line_numbers: tuple[int, ...] = ()


@dataclass
class Recommendation:
    """An architectural, refactoring or quality suggestion."""

    code: str
    message: str
    severity: str = "info"  # "info", "warning", "high"
    related_ids: list[str] = field(default_factory=list)
    line_numbers: list[int] = field(default_factory=list)


def _drop_none(data: dict) -> dict:
    """Remove keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


def selector_to_dict(selector: Selector) -> dict:
    """Serialize a selector without its candidates' optional fields."""
    return {
        "raw": selector.raw,
        "strategy": selector.strategy,
        "structured_details": selector.structured_details,
        "fragility_score": selector.fragility_score,
        "fragility_signals": list(selector.fragility_signals),
        "improvement_candidates": [
            asdict(c) for c in selector.improvement_candidates
        ],
    }


@dataclass
class AnalysisResult:
    """The complete intermediate representation of one analyzed script."""

    metadata: dict[str, Any]
    pages: list[Page]
    components: list[Component]
    methods: dict[str, list[MethodSuggestion]]  # owner id -> methods
    component_usages: dict[str, tuple[str, str]]  # action id -> (component id, page id)
    selector_ids: dict[str, str]  # normalized raw -> selector id
    action_sequences: list[dict[str, Any]]
    selector_analysis: dict[str, Any]
    recommendations: dict[str, list[Recommendation]]
    warnings: list[AnalysisWarning] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        metadata = dict(self.metadata)
        metadata["warnings"] = [
            {"code": w.code, "message": w.message, "line_numbers": list(w.line_numbers)}
            for w in self.warnings
        ]
        return {
            "metadata": metadata,
            "pages": [self._page_to_dict(p) for p in self.pages],
            "components": [self._component_to_dict(c) for c in self.components],
            "action_sequences": self.action_sequences,
            "selector_analysis": self.selector_analysis,
            "recommendations": {
                section: [_drop_none(asdict(r)) for r in entries]
                for section, entries in self.recommendations.items()
            },
        }

    def _page_to_dict(self, page: Page) -> dict:
        usages: dict[str, list[str]] = {}
        for action in page.actions:
            usage = self.component_usages.get(action.id)
            if usage:
                usages.setdefault(usage[0], []).append(action.id)
        start, end = page.line_range
        return {
            "id": page.id,
            "inferred_name": page.inferred_name,
            "confidence": page.confidence,
            "url": page.url,
            "url_pattern": page.url_pattern,
            "origin": page.origin,
            "page_variable": page.page_variable,
            "entry_event": _drop_none(asdict(page.entry_event)),
            "exit_event": _drop_none(asdict(page.exit_event)),
            "line_range": {"start": start, "end": end},
            "actions": [self._action_to_dict(a) for a in page.actions],
            "assertions": [self._assertion_to_dict(a) for a in page.assertions],
            "structural_lines": page.structural_lines,
            "suggested_methods": [
                self._method_to_dict(m) for m in self.methods.get(page.id, [])
            ],
            "component_usages": [
                {"component_id": cid, "action_ids": ids}
                for cid, ids in usages.items()
            ],
        }

    def _action_to_dict(self, action: Action) -> dict:
        st = action.statement
        result = {
            "id": action.id,
            "line_number": st.line_number,
            "kind": st.kind,
            "action_verb": st.action_verb,
            "subtype": st.subtype,
            "raw_text": st.raw_text,
            "selector_id": None,
            "selector": None,
            "literal_arguments": list(st.literal_arguments),
            "target_url": st.target_url,
            "parameters": [self._parameter_to_dict(p) for p in action.parameters],
            "wait_behavior": _drop_none(asdict(action.wait_behavior)),
            "component_usage": None,
        }
        if action.selector:
            result["selector_id"] = self.selector_ids[action.selector.raw]
            result["selector"] = action.selector.raw
        usage = self.component_usages.get(action.id)
        if usage:
            result["component_usage"] = {"component_id": usage[0], "delegated": True}
        return _drop_none(result)

    def _assertion_to_dict(self, assertion: Assertion) -> dict:
        result = {
            "id": assertion.id,
            "line_number": assertion.line_number,
            "type": assertion.type,
            "matcher": assertion.matcher,
            "negated": assertion.negated,
            "raw_text": assertion.statement.raw_text,
            "selector_id": None,
            "selector": None,
            "expected_value": assertion.expected_value,
            "placement_recommendation": assertion.placement_recommendation,
            "placement_reason": assertion.placement_reason,
        }
        if assertion.selector:
            result["selector_id"] = self.selector_ids[assertion.selector.raw]
            result["selector"] = assertion.selector.raw
        return _drop_none(result)

    def _parameter_to_dict(self, parameter: Parameter) -> dict:
        return {
            "name": parameter.name,
            "type": parameter.type,
            "example_value": parameter.example_value,
            "should_be_parameter": parameter.should_be_parameter,
            "source": parameter.source,
            "action_ids": list(parameter.action_ids),
        }

    def _method_to_dict(self, method: MethodSuggestion) -> dict:
        result = {
            "id": method.id,
            "name": method.name,
            "name_confidence": method.name_confidence,
            "alternatives": method.alternatives,
            "kind": method.kind,
            "action_ids": method.action_ids,
            "assertion_ids": method.assertion_ids,
            "parameters": [self._parameter_to_dict(p) for p in method.parameters],
            "complexity": method.complexity,
            "complexity_signals": method.complexity_signals,
            "line_range": {"start": method.line_range[0], "end": method.line_range[1]},
            "returns_page_id": method.returns_page_id,
            "delegates_to_component_id": method.delegates_to_component_id,
        }
        return _drop_none(result)

    def _component_to_dict(self, component: Component) -> dict:
        return {
            "id": component.id,
            "inferred_name": component.inferred_name,
            "type": component.type,
            "confidence": component.confidence,
            "provisional": component.provisional,
            "exact_match": component.exact_match,
            "appears_on_page_ids": component.appears_on_page_ids,
            "appearance_count": component.appearance_count,
            "instances": [asdict(i) for i in component.instances],
            "selector_templates": component.selector_templates,
            "suggested_methods": [
                self._method_to_dict(m) for m in self.methods.get(component.id, [])
            ],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
