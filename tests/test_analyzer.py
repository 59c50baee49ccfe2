"""End-to-end tests for the analysis pipeline."""

from pathlib import Path

import pytest

from pom_analyzer.analyzer import analyze_file, analyze_script
from pom_analyzer.config import AnalyzerConfig
from pom_analyzer.extractor import ScriptParseError

FIXTURES = Path(__file__).parent / "fixtures" / "scripts"


def _fixture(name):
    return (FIXTURES / name).read_text(encoding="utf-8")


class TestAnalyzerScenarios:
    def given_fixture(self, name):
        self.script = _fixture(name)
        self.config = AnalyzerConfig()

    def given_config(self, data):
        self.config = AnalyzerConfig.from_dict(data)

    def when_script_is_analyzed(self):
        self.result = analyze_script(self.script, self.config)
        self.document = self.result.to_dict()

    def then_page_count_is(self, expected):
        assert len(self.result.pages) == expected

    def then_page_confidences_are(self, *confidences):
        assert [p.confidence for p in self.result.pages] == list(confidences)

    def test_login_flow(self):
        """Login script: two certain pages, one grouped form method, no components."""
        self.given_fixture("login.spec.ts")
        self.when_script_is_analyzed()
        self.then_page_count_is(2)
        self.then_page_confidences_are(100, 100)
        assert self.result.components == []
        assert self.document["metadata"]["unique_pages_detected"] == 2

        action_methods = [m for m in self.result.methods["page_1"] if m.kind == "actions"]
        assert len(action_methods) == 1
        page_actions = self.result.pages[0].actions
        pre_wait = [a.id for a in page_actions if a.kind == "interaction"]
        assert len(pre_wait) == 3
        assert set(pre_wait) <= set(action_methods[0].action_ids)

        email = next(
            a.selector for a in page_actions if a.selector and "Email" in a.selector.raw
        )
        assert 70 <= email.fragility_score <= 89

    def test_navigation_chain(self):
        """Every goto opens a page with full confidence."""
        self.given_fixture("checkout_flow.spec.ts")
        self.when_script_is_analyzed()
        self.then_page_count_is(3)
        self.then_page_confidences_are(100, 100, 100)
        assert [p.entry_event.type for p in self.result.pages] == ["navigation"] * 3
        assert [p.entry_event.line_number for p in self.result.pages] == [4, 6, 8]

    def test_shared_menu_component(self):
        """The repeated menu pair is one component referenced from both pages."""
        self.given_fixture("shared_menu.spec.ts")
        self.when_script_is_analyzed()
        assert len(self.result.components) == 1
        component = self.document["components"][0]
        assert component["appearance_count"] == 2
        assert component["confidence"] >= 70

        for page in self.document["pages"]:
            delegated = [
                a for a in page["actions"] if a.get("component_usage") is not None
            ]
            assert len(delegated) == 2
            assert all(
                a["component_usage"]["component_id"] == component["id"] for a in delegated
            )

    def test_script_without_navigation(self):
        """No navigation means one uncertain page and a warning."""
        self.given_fixture("no_navigation.spec.ts")
        self.when_script_is_analyzed()
        self.then_page_count_is(1)
        self.then_page_confidences_are(60)
        codes = [w["code"] for w in self.document["metadata"]["warnings"]]
        assert "uncertain_page_boundaries" in codes

    def test_positional_xpath(self):
        """A positional xpath scores 100 and asks for a source change."""
        self.given_fixture("xpath_form.spec.ts")
        self.when_script_is_analyzed()
        selector = self.result.pages[0].actions[1].selector
        assert selector.fragility_score == 100
        assert any(
            c.strategy == "source_change" and not c.actionable
            for c in selector.improvement_candidates
        )

    def test_long_form_respects_method_size(self):
        """Nine fills never produce a method above the limit."""
        self.given_fixture("long_form.spec.ts")
        self.given_config({"method_grouping": {"max_actions_per_method": 8}})
        self.when_script_is_analyzed()
        fill_methods = [m for m in self.result.methods["page_1"] if m.kind == "actions"]
        assert len(fill_methods) >= 2
        assert all(len(m.action_ids) + len(m.assertion_ids) <= 8 for m in fill_methods)


ALL_FIXTURES = sorted(p.name for p in FIXTURES.glob("*.spec.ts"))


class TestAnalyzerProperties:
    @pytest.mark.parametrize("name", ALL_FIXTURES)
    def test_every_statement_belongs_to_one_page(self, name):
        """Pages partition the script's statements."""
        result = analyze_script(_fixture(name))
        lines = [s.line_number for p in result.pages for s in p.statements]
        assert len(lines) == len(set(lines))
        assert len(lines) == result.metadata["total_statements"]

    @pytest.mark.parametrize("name", ALL_FIXTURES)
    def test_every_action_is_in_one_page_method(self, name):
        """Page methods cover each action exactly once."""
        result = analyze_script(_fixture(name))
        for page in result.pages:
            covered = [i for m in result.methods[page.id] for i in m.action_ids]
            assert sorted(covered) == sorted(a.id for a in page.actions)

    @pytest.mark.parametrize("name", ALL_FIXTURES)
    def test_references_resolve(self, name):
        """Every id referenced in the document is defined in it."""
        document = analyze_script(_fixture(name)).to_dict()
        page_ids = {p["id"] for p in document["pages"]}
        action_ids = {a["id"] for p in document["pages"] for a in p["actions"]}
        assertion_ids = {a["id"] for p in document["pages"] for a in p["assertions"]}
        component_ids = {c["id"] for c in document["components"]}
        selector_ids = {s["id"] for s in document["selector_analysis"]["selectors"]}
        methods = [m for p in document["pages"] for m in p["suggested_methods"]]
        methods += [m for c in document["components"] for m in c["suggested_methods"]]
        method_ids = {m["id"] for m in methods}

        for page in document["pages"]:
            for item in page["actions"] + page["assertions"]:
                if "selector_id" in item:
                    assert item["selector_id"] in selector_ids
        for method in methods:
            assert set(method["action_ids"]) <= action_ids
            assert set(method["assertion_ids"]) <= assertion_ids
            if "returns_page_id" in method:
                assert method["returns_page_id"] in page_ids
            if "delegates_to_component_id" in method:
                assert method["delegates_to_component_id"] in component_ids
        for component in document["components"]:
            assert set(component["appears_on_page_ids"]) <= page_ids
        for sequence in document["action_sequences"]:
            for step in sequence["steps"]:
                assert step["page_id"] in page_ids
                if "method_id" in step:
                    assert step["method_id"] in method_ids
                else:
                    assert step["assertion_id"] in assertion_ids

    @pytest.mark.parametrize("name", ALL_FIXTURES)
    def test_analysis_is_deterministic(self, name):
        """The same input yields byte-identical output."""
        script = _fixture(name)
        assert analyze_script(script).to_json() == analyze_script(script).to_json()

    @pytest.mark.parametrize("name", ALL_FIXTURES)
    def test_scores_are_bounded(self, name):
        """Confidences and fragility scores stay within 0..100."""
        result = analyze_script(_fixture(name))
        for page in result.pages:
            assert 0 <= page.confidence <= 100
        for component in result.components:
            assert 0 <= component.confidence <= 100
        for entry in result.selector_analysis["selectors"]:
            assert 0 <= entry["fragility_score"] <= 100

    def test_more_appearances_never_lower_component_confidence(self):
        """Adding a page with the same fragment does not reduce confidence."""
        base = _fixture("shared_menu.spec.ts")
        extended = base.replace(
            "});",
            "  await page.goto('/orders');\n"
            "  await page.click('[data-testid=\"user-menu\"]');\n"
            "  await page.click('text=Logout');\n"
            "});",
        )
        before = analyze_script(base).components[0].confidence
        after = analyze_script(extended).components[0].confidence
        assert after >= before

    def test_empty_script_is_rejected(self):
        """Empty input is a fatal error."""
        with pytest.raises(ScriptParseError):
            analyze_script("   \n")

    def test_analyze_file_records_source(self):
        """The file path is recorded in the metadata."""
        path = FIXTURES / "login.spec.ts"
        result = analyze_file(path)
        assert result.metadata["source_name"] == str(path)
        assert result.metadata["total_lines"] == 10
