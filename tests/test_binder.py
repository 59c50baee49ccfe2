"""Tests for binding statements into actions, assertions and parameters."""

from pom_analyzer.binder import bind_pages, extract_parameters, wait_behavior
from pom_analyzer.config import AnalyzerConfig
from pom_analyzer.extractor import extract_statements
from pom_analyzer.locators import classify_selector
from pom_analyzer.structure import detect_pages


def _statement(line):
    return extract_statements(line + "\n")[0]


def _bind(*lines):
    config = AnalyzerConfig()
    statements = extract_statements("\n".join(lines) + "\n")
    return bind_pages(detect_pages(statements, config.page_detection).segments, config)


class TestBinder:
    def test_ids_follow_source_order(self):
        """Pages, actions and assertions are numbered in source order."""
        result = _bind(
            "await page.goto('/a');",
            "await page.click('#x');",
            "await expect(page.locator('#y')).toBeVisible();",
            "await page.goto('/b');",
            "await page.click('#z');",
        )
        assert [p.id for p in result.pages] == ["page_1", "page_2"]
        assert [a.id for a in result.pages[0].actions] == ["action_1", "action_2"]
        assert [a.id for a in result.pages[1].actions] == ["action_3", "action_4"]
        assert result.pages[0].assertions[0].id == "assertion_1"

    def test_selectors_are_scored_when_bound(self):
        """Bound actions carry classified, scored selectors."""
        result = _bind("await page.fill('[placeholder=\"Email\"]', 'a@b.c');")
        selector = result.pages[0].actions[0].selector
        assert selector.raw == '[placeholder="Email"]'
        assert selector.strategy == "placeholder"
        assert selector.fragility_score == 80

    def test_unsupported_calls_warn(self):
        """Custom calls are kept and reported."""
        result = _bind("await page.locator('#x').frobnicate();")
        assert [w.code for w in result.warnings] == ["unsupported_action"]

    def test_multi_statement_lines_warn(self):
        """Lines holding several statements are reported."""
        result = _bind("await page.click('#a'); await page.click('#b');")
        assert "multi_statement_line" in [w.code for w in result.warnings]


class TestWaitBehavior:
    def test_fixed_timeout_is_an_anti_pattern(self):
        """waitForTimeout records its duration and is flagged."""
        behavior = wait_behavior(_statement("await page.waitForTimeout(3000);"))
        assert behavior.strategy == "fixed_timeout"
        assert behavior.timeout_ms == 3000
        assert behavior.anti_pattern is True

    def test_url_wait(self):
        """waitForURL waits on the URL."""
        behavior = wait_behavior(_statement("await page.waitForURL('/home');"))
        assert behavior.strategy == "url"
        assert behavior.anti_pattern is False

    def test_interactions_auto_wait(self):
        """Actions rely on auto-waiting unless told otherwise."""
        behavior = wait_behavior(_statement("await page.click('#x', { timeout: 1000 });"))
        assert behavior.strategy == "auto"
        assert behavior.timeout_ms == 1000


class TestExtractParameters:
    def test_literal_fill_is_named_after_the_field(self):
        """Literal values take their name from the selector content."""
        (parameter,) = extract_parameters(
            _statement("await page.fill('#first-name', 'Ada');"),
            classify_selector("'#first-name'"),
        )
        assert parameter.name == "firstName"
        assert parameter.example_value == "Ada"
        assert parameter.should_be_parameter is True
        assert parameter.source == "literal"

    def test_variable_fill_is_named_after_the_variable(self):
        """Variables name their parameter."""
        (parameter,) = extract_parameters(
            _statement("await page.fill('#email', user.email);"), None
        )
        assert parameter.name == "email"
        assert parameter.source == "variable"
        assert parameter.example_value == "user.email"

    def test_template_literal_uses_interpolated_variable(self):
        """Template literals are named after their last interpolated variable."""
        (parameter,) = extract_parameters(
            _statement("await page.fill('#search', `${query}`);"), None
        )
        assert parameter.name == "query"

    def test_empty_string_is_not_a_parameter(self):
        """Clearing a field with '' is constant-like."""
        (parameter,) = extract_parameters(_statement("await page.fill('#q', '');"), None)
        assert parameter.should_be_parameter is False

    def test_numbers_keep_their_type(self):
        """Numeric literals are number parameters."""
        (parameter,) = extract_parameters(_statement("await page.fill('#qty', 0);"), None)
        assert parameter.type == "number"
        assert parameter.should_be_parameter is True

    def test_clicks_have_no_parameters(self):
        """Clicks pass no value."""
        assert extract_parameters(_statement("await page.click('#x');"), None) == []
