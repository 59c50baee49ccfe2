"""Tests for method grouping, naming, parameters and complexity."""

from pom_analyzer.analyzer import analyze_script
from pom_analyzer.config import AnalyzerConfig


def _script(*lines):
    return "\n".join(lines) + "\n"


class TestMethodGrouper:
    def given_script(self, *lines):
        self.script = _script(*lines)
        self.config = AnalyzerConfig()

    def given_grouping(self, **options):
        self.config = AnalyzerConfig.from_dict({"method_grouping": options})

    def when_script_is_analyzed(self):
        self.result = analyze_script(self.script, self.config)

    def methods_of(self, owner_id="page_1"):
        return self.result.methods[owner_id]

    def then_method_names_are(self, *names, owner_id="page_1"):
        assert [m.name for m in self.methods_of(owner_id)] == list(names)

    def then_method_actions_are(self, *action_lists, owner_id="page_1"):
        assert [m.action_ids for m in self.methods_of(owner_id)] == [
            list(ids) for ids in action_lists
        ]

    def test_login_form_is_one_method_named_after_the_submit(self):
        """Fills followed by their submit click and URL wait form one method."""
        self.given_script(
            "await page.goto('/login');",
            "await page.fill('[placeholder=\"Email\"]', 'user@example.com');",
            "await page.fill('[placeholder=\"Password\"]', 'secret');",
            "await page.getByRole('button', { name: 'Sign in' }).click();",
            "await page.waitForURL('**/dashboard');",
            "await expect(page.locator('.welcome')).toContainText('Welcome back');",
        )
        self.when_script_is_analyzed()
        self.then_method_names_are("goto", "signIn")
        self.then_method_actions_are(
            ["action_1"], ["action_2", "action_3", "action_4", "action_5"]
        )
        sign_in = self.methods_of()[1]
        assert sign_in.name_confidence == 90
        assert sign_in.returns_page_id == "page_2"
        assert [p.name for p in sign_in.parameters] == ["email", "password"]
        assert self.methods_of("page_2") == []

    def test_max_actions_per_method(self):
        """Nine fills with a limit of eight split into two methods."""
        self.given_script(
            "await page.goto('/register');",
            *[f"await page.fill('#field-{n}', 'value {n}');" for n in range(9)],
        )
        self.when_script_is_analyzed()
        fill_methods = [m for m in self.methods_of() if m.kind == "actions"]
        assert len(fill_methods) >= 2
        assert all(len(m.action_ids) <= 8 for m in fill_methods)

    def test_unrelated_fills_when_grouping_is_off(self):
        """Without fill grouping unrelated fills get their own methods."""
        self.given_script(
            "await page.goto('/register');",
            "await page.fill('#first-name', 'Ada');",
            "await page.fill('#last-name', 'Lovelace');",
        )
        self.given_grouping(group_related_fills=False)
        self.when_script_is_analyzed()
        self.then_method_actions_are(["action_1"], ["action_2"], ["action_3"])

    def test_every_action_is_in_exactly_one_method(self):
        """Page methods cover each page action once."""
        self.given_script(
            "await page.goto('/shop');",
            "await page.hover('#menu');",
            "await page.click('#menu-item');",
            "await page.fill('#q', 'shoes');",
            "await page.press('#q', 'Enter');",
            "await page.waitForTimeout(500);",
            "await page.click('#first-result');",
        )
        self.when_script_is_analyzed()
        covered = [i for m in self.methods_of() for i in m.action_ids]
        assert sorted(covered) == sorted(a.id for a in self.result.pages[0].actions)
        assert len(covered) == len(set(covered))

    def test_navigation_joins_actions_when_not_separated(self):
        """With separate_navigation off the goto starts the first method."""
        self.given_script(
            "await page.goto('/login');",
            "await page.fill('#email', 'a@b.c');",
            "await page.click('#submit');",
        )
        self.given_grouping(separate_navigation=False)
        self.when_script_is_analyzed()
        self.then_method_actions_are(["action_1", "action_2", "action_3"])

    def test_assertions_join_methods_when_not_separated(self):
        """With separate_assertions off assertions are grouped with actions."""
        self.given_script(
            "await page.goto('/login');",
            "await page.click('#submit');",
            "await expect(page.locator('#error')).toBeVisible();",
        )
        self.given_grouping(separate_assertions=False)
        self.when_script_is_analyzed()
        assert any(m.assertion_ids == ["assertion_1"] for m in self.methods_of())

    def test_repeated_checks_become_verification_methods(self):
        """The same check on several pages becomes a verify method."""
        self.given_script(
            "await page.goto('/inbox');",
            "await page.waitForLoadState();",
            "await expect(page.locator('#toast')).toBeVisible();",
            "await page.goto('/outbox');",
            "await page.waitForLoadState();",
            "await expect(page.locator('#toast')).toBeVisible();",
        )
        self.when_script_is_analyzed()
        verification = [m for m in self.methods_of() if m.kind == "verification"]
        assert [m.name for m in verification] == ["verifyToastVisible"]
        assert verification[0].assertion_ids == ["assertion_1"]

    def test_generic_name_has_alternatives(self):
        """Without any naming signal a numbered generic name is used."""
        self.given_script("await page.keyboard.press('Tab');")
        self.when_script_is_analyzed()
        method = self.methods_of()[0]
        assert method.name == "performAction1"
        assert method.name_confidence <= 60
        assert len(method.alternatives) >= 2
        assert "generic_method_name" in [w.code for w in self.result.warnings]

    def test_url_context_name(self):
        """A method without content is named from the page URL."""
        self.given_script(
            "await page.goto('/checkout');",
            "await page.waitForLoadState('networkidle');",
        )
        self.when_script_is_analyzed()
        self.then_method_names_are("goto", "waitForCheckout")
        assert self.methods_of()[1].name_confidence == 75

    def test_parameters_are_deduplicated_by_name(self):
        """The same variable used twice is one parameter."""
        self.given_script(
            "await page.goto('/register');",
            "await page.fill('#email', email);",
            "await page.fill('#email-confirm', email);",
        )
        self.when_script_is_analyzed()
        method = self.methods_of()[1]
        assert len(method.parameters) == 1
        parameter = method.parameters[0]
        assert parameter.name == "email"
        assert parameter.source == "variable"
        assert parameter.action_ids == ["action_2", "action_3"]

    def test_key_presses_are_not_parameters(self):
        """Keys are constants, not inputs."""
        self.given_script(
            "await page.goto('/search');",
            "await page.fill('#q', 'shoes');",
            "await page.press('#q', 'Enter');",
        )
        self.when_script_is_analyzed()
        parameters = self.methods_of()[1].parameters
        assert [(p.type, p.should_be_parameter) for p in parameters] == [
            ("string", True),
            ("key", False),
        ]

    def test_complexity_counts_actions_parameters_and_signals(self):
        """Branching and file uploads add to the complexity score."""
        self.given_script(
            "test('upload', async ({ page }) => {",
            "  await page.goto('/profile');",
            "  if (needsAvatar) {",
            "    await page.setInputFiles('#avatar', 'me.png');",
            "  }",
            "});",
        )
        self.when_script_is_analyzed()
        method = self.methods_of()[1]
        assert method.complexity_signals == ["branching", "file_upload"]
        assert method.complexity == 5 + 10 + 15 + 10

    def test_component_actions_are_delegated(self):
        """Page methods delegate recurring fragments to the component."""
        self.given_script(
            "await page.goto('/settings');",
            "await page.click('[data-testid=\"user-menu\"]');",
            "await page.click('text=Logout');",
            "await page.goto('/profile');",
            "await page.click('[data-testid=\"user-menu\"]');",
            "await page.click('text=Logout');",
        )
        self.when_script_is_analyzed()
        delegation = self.methods_of()[1]
        assert delegation.kind == "component_delegation"
        assert delegation.delegates_to_component_id == "component_1"
        self.then_method_names_are("logout", owner_id="component_1")
        assert self.methods_of("component_1")[0].action_ids == ["action_2", "action_3"]

    def test_method_ids_are_sequential(self):
        """Page methods are numbered first, then component methods."""
        self.given_script(
            "await page.goto('/settings');",
            "await page.click('[data-testid=\"user-menu\"]');",
            "await page.click('text=Logout');",
            "await page.goto('/profile');",
            "await page.click('[data-testid=\"user-menu\"]');",
            "await page.click('text=Logout');",
        )
        self.when_script_is_analyzed()
        ids = [m.id for owner in self.result.methods.values() for m in owner]
        assert ids == [f"method_{n}" for n in range(1, 6)]
        assert self.methods_of("component_1")[0].id == "method_5"
