"""Tests for fragility scoring and improvement suggestions."""

from pom_analyzer.locators import (
    STABILITY_THRESHOLD,
    assess_selector,
    classify_selector,
    derive_content,
    infer_role,
)


class TestFragilityScore:
    def given_selector(self, expression, verb=None, preferred=None):
        self.expression = expression
        self.verb = verb
        self.preferred = preferred

    def when_selector_is_assessed(self):
        kwargs = {"verb": self.verb}
        if self.preferred is not None:
            kwargs["preferred_strategies"] = self.preferred
        self.selector = assess_selector(classify_selector(self.expression), **kwargs)

    def then_score_is(self, expected):
        assert self.selector.fragility_score == expected

    def then_signals_include(self, *signals):
        for signal in signals:
            assert signal in self.selector.fragility_signals

    def then_candidate_strategies_are(self, *strategies):
        assert [c.strategy for c in self.selector.improvement_candidates] == list(strategies)

    def test_placeholder_only_is_fragile(self):
        """A bare placeholder attribute scores in the fragile band."""
        self.given_selector("'[placeholder=\"Email\"]'", verb="fill")
        self.when_selector_is_assessed()
        self.then_score_is(80)
        self.then_signals_include("placeholder_only")

    def test_placeholder_gets_testid_and_role_candidates(self):
        """Candidates reuse the placeholder text and the verb's role."""
        self.given_selector("'[placeholder=\"Email\"]'", verb="fill")
        self.when_selector_is_assessed()
        self.then_candidate_strategies_are("testid", "role")
        rendered = [c.rendered_selector for c in self.selector.improvement_candidates]
        assert rendered == [
            "getByTestId('email')",
            "getByRole('textbox', { name: 'Email' })",
        ]

    def test_positional_xpath_is_clamped_to_100(self):
        """Several penalties never push the score past 100."""
        self.given_selector("\"//div[@class='form']//button[2]\"")
        self.when_selector_is_assessed()
        self.then_score_is(100)
        self.then_signals_include("xpath_syntax", "positional", "class_only")

    def test_positional_xpath_requires_source_change(self):
        """With no usable content the only candidate is adding a test id in source."""
        self.given_selector("\"//div[@class='form']//button[2]\"")
        self.when_selector_is_assessed()
        self.then_candidate_strategies_are("source_change")
        candidate = self.selector.improvement_candidates[0]
        assert candidate.actionable is False
        assert candidate.rendered_selector is None
        assert "data-testid" in candidate.rationale

    def test_testid_is_stable(self):
        """Test ids earn the largest credit and get no candidates."""
        self.given_selector("'[data-testid=\"submit\"]'")
        self.when_selector_is_assessed()
        self.then_score_is(10)
        assert self.selector.improvement_candidates == ()

    def test_role_with_name(self):
        """Role selectors are credited."""
        self.given_selector("getByRole('button', { name: 'Save' })")
        self.when_selector_is_assessed()
        self.then_score_is(20)

    def test_class_only(self):
        """A class name alone is a styling hook."""
        self.given_selector("'.submit'")
        self.when_selector_is_assessed()
        self.then_score_is(75)
        self.then_candidate_strategies_are("source_change")

    def test_id_only(self):
        """A bare id carries a small penalty and yields candidates from the id."""
        self.given_selector("'#email'", verb="fill")
        self.when_selector_is_assessed()
        self.then_score_is(60)
        self.then_candidate_strategies_are("testid", "role")

    def test_text_only(self):
        """Visible text alone is penalized."""
        self.given_selector("getByText('Welcome')", verb="click")
        self.when_selector_is_assessed()
        self.then_score_is(70)
        assert self.selector.improvement_candidates[1].rendered_selector == (
            "getByRole('button', { name: 'Welcome' })"
        )

    def test_label_association_is_stable(self):
        """Label lookups are credited and need no replacement."""
        self.given_selector("getByLabel('Email')")
        self.when_selector_is_assessed()
        self.then_score_is(40)
        assert self.selector.improvement_candidates == ()

    def test_name_with_type(self):
        """Form controls addressed by name and type are credited."""
        self.given_selector("'input[name=\"email\"][type=\"email\"]'")
        self.when_selector_is_assessed()
        self.then_score_is(35)
        self.then_signals_include("name_with_type", "multiple_attributes")

    def test_positional_css(self):
        """nth-child selectors are positional."""
        self.given_selector("'li:nth-child(3)'")
        self.when_selector_is_assessed()
        self.then_score_is(85)

    def test_deep_nesting(self):
        """More than three levels of nesting is penalized."""
        self.given_selector("'div > ul > li > a > span'")
        self.when_selector_is_assessed()
        self.then_score_is(65)
        self.then_signals_include("deep_nesting")

    def test_score_is_clamped_at_zero(self):
        """Several credits never push the score below 0."""
        self.given_selector(
            "'input[data-testid=\"x\"][name=\"n\"][type=\"t\"][aria-label=\"a\"]'"
        )
        self.when_selector_is_assessed()
        self.then_score_is(0)

    def test_stronger_strategies_score_lower(self):
        """Test id scores below class-only, which scores below xpath."""
        testid = assess_selector(classify_selector("getByTestId('save')"))
        css = assess_selector(classify_selector("'.save'"))
        xpath = assess_selector(classify_selector("\"//button[@class='save']\""))
        assert testid.fragility_score < css.fragility_score < xpath.fragility_score

    def test_preferred_strategies_order_candidates(self):
        """Candidates follow the configured strategy order."""
        self.given_selector("'#email'", verb="fill", preferred=["role", "testid"])
        self.when_selector_is_assessed()
        self.then_candidate_strategies_are("role", "testid")

    def test_suggestions_can_be_disabled(self):
        """Scoring still happens when suggestions are off."""
        selector = assess_selector(classify_selector("'.submit'"), suggest=False)
        assert selector.fragility_score == 75
        assert selector.improvement_candidates == ()

    def test_threshold(self):
        """Selectors above the threshold are fragile."""
        assert STABILITY_THRESHOLD == 40


class TestContentAndRole:
    def test_content_never_comes_from_class_names(self):
        """Class names describe styling, not purpose."""
        assert derive_content(classify_selector("'.btn-primary'")) is None

    def test_content_from_accessible_name(self):
        """The accessible name is the preferred content."""
        assert derive_content(classify_selector("getByRole('button', { name: 'Save' })")) == (
            "Save"
        )

    def test_content_skips_dynamic_values(self):
        """Generated ids are not meaningful content."""
        assert derive_content(classify_selector("'#a1b2c3d4e5f6'")) is None

    def test_role_from_tag(self):
        """Tags imply roles."""
        assert infer_role(classify_selector("'a.nav-link'")) == "link"
        assert infer_role(classify_selector("'input[type=\"checkbox\"]'")) == "checkbox"

    def test_role_from_verb(self):
        """Without tag or role the verb hints at the role."""
        assert infer_role(classify_selector("'#email'"), verb="fill") == "textbox"
        assert infer_role(classify_selector("'#email'")) is None
