"""Tests for identifier helpers."""

from pom_analyzer.naming import camel, kebab, pascal, safe_method_name, unique_name, words


class TestNaming:
    def test_words_split_any_style(self):
        """Kebab, snake, camel and prose all split into lower-case words."""
        assert words("user-menu") == ["user", "menu"]
        assert words("first_name") == ["first", "name"]
        assert words("signInButton") == ["sign", "in", "button"]
        assert words("HTMLParser") == ["html", "parser"]
        assert words("Sign in") == ["sign", "in"]
        assert words(None) == []

    def test_case_styles(self):
        """camel, pascal and kebab cap names at four words."""
        assert camel(["sign", "in"]) == "signIn"
        assert pascal(["user", "menu"]) == "UserMenu"
        assert kebab("Add to cart") == "add-to-cart"
        assert camel(["a", "b", "c", "d", "e"]) == "aBCD"

    def test_reserved_words_are_prefixed(self):
        """JavaScript keywords cannot be method names."""
        assert safe_method_name("delete", "click") == "clickDelete"
        assert safe_method_name("2fa", "fill") == "fill2fa"
        assert safe_method_name("save", "click") == "save"

    def test_unique_name_numbers_repeats(self):
        """Repeated names get the smallest free numeric suffix."""
        taken = set()
        assert unique_name("LoginPage", taken) == "LoginPage"
        assert unique_name("LoginPage", taken) == "LoginPage2"
        assert unique_name("LoginPage", taken) == "LoginPage3"
