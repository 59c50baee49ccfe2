"""Tests for assertion typing and placement."""

import pytest

from pom_analyzer.analyzer import analyze_script
from pom_analyzer.assertion_classifier import classify_assertion_type


class TestAssertionType:
    @pytest.mark.parametrize(
        "matcher, expected",
        [
            ("toContainText", "toContainText"),
            ("toHaveText", "toContainText"),
            ("toBeVisible", "toBeVisible"),
            ("toBeHidden", "toBeVisible"),
            ("toHaveURL", "toHaveURL"),
            ("toHaveValue", "toHaveValue"),
            ("toHaveValues", "toHaveValue"),
            ("toHaveClass", "custom"),
            ("toMatchSnapshot", "custom"),
        ],
    )
    def test_matcher_families(self, matcher, expected):
        """Matchers map onto the four assertion types or custom."""
        assert classify_assertion_type(matcher) == expected


class TestAssertionPlacement:
    def given_script(self, *lines):
        self.script = "\n".join(lines) + "\n"

    def when_script_is_analyzed(self):
        self.result = analyze_script(self.script)
        self.assertions = [a for p in self.result.pages for a in p.assertions]

    def then_placements_are(self, *placements):
        assert [a.placement_recommendation for a in self.assertions] == list(placements)

    def test_url_check_after_click_belongs_in_page_object(self):
        """A URL check right after the click that navigates verifies that click."""
        self.given_script(
            "await page.goto('/login');",
            "await page.click('#submit');",
            "await expect(page).toHaveURL(/home/);",
        )
        self.when_script_is_analyzed()
        self.then_placements_are("in_page_object")
        assert "click on line 2" in self.assertions[0].placement_reason

    def test_value_check_after_fill_of_same_field(self):
        """Checking the value just filled verifies the fill."""
        self.given_script(
            "await page.goto('/cart');",
            "await page.fill('#qty', '2');",
            "await expect(page.locator('#qty')).toHaveValue('2');",
        )
        self.when_script_is_analyzed()
        self.then_placements_are("in_page_object")

    def test_value_check_of_another_field_stays_in_test(self):
        """A value check on a different field is test-specific."""
        self.given_script(
            "await page.goto('/cart');",
            "await page.fill('#qty', '2');",
            "await expect(page.locator('#total')).toHaveValue('20');",
        )
        self.when_script_is_analyzed()
        self.then_placements_are("in_test")

    def test_repeated_shape_becomes_separate_method(self):
        """The same check repeated is shared."""
        self.given_script(
            "await page.goto('/a');",
            "await page.waitForLoadState();",
            "await expect(page.getByText('Saved')).toBeVisible();",
            "await page.goto('/b');",
            "await page.waitForLoadState();",
            "await expect(page.getByText('Saved')).toBeVisible();",
        )
        self.when_script_is_analyzed()
        self.then_placements_are("separate_method", "separate_method")

    def test_custom_matcher_warns(self):
        """Unrecognized matchers are kept as custom with a warning."""
        self.given_script(
            "await page.click('#theme-toggle');",
            "await expect(page.locator('body')).toHaveClass(/dark/);",
        )
        self.when_script_is_analyzed()
        assert self.assertions[0].type == "custom"
        assert self.assertions[0].matcher == "toHaveClass"
        assert "custom_assertion" in [w.code for w in self.result.warnings]

    def test_negation_is_recorded(self):
        """Negated assertions keep their type and set the flag."""
        self.given_script(
            "await page.goto('/a');",
            "await expect(page.locator('#spinner')).not.toBeVisible();",
        )
        self.when_script_is_analyzed()
        assert self.assertions[0].type == "toBeVisible"
        assert self.assertions[0].negated is True
