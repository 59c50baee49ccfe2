"""Identifier helpers for inferred page, component, method and parameter names."""

import re

WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")

# Words that cannot stand alone as a JavaScript method name
RESERVED_WORDS = frozenset(
    {
        "break",
        "case",
        "catch",
        "class",
        "continue",
        "default",
        "delete",
        "do",
        "else",
        "export",
        "finally",
        "for",
        "function",
        "if",
        "import",
        "in",
        "new",
        "return",
        "switch",
        "this",
        "throw",
        "try",
        "var",
        "void",
        "while",
        "with",
    }
)

MAX_NAME_WORDS = 4


def words(text: str | None) -> list[str]:
    """Split arbitrary text (kebab, snake, camel, prose) into lower-case words."""
    if not text:
        return []
    return [w.lower() for w in WORD_PATTERN.findall(text)]


def camel(parts: list[str]) -> str:
    parts = [p for p in parts if p][:MAX_NAME_WORDS]
    if not parts:
        return ""
    return parts[0].lower() + "".join(p.capitalize() for p in parts[1:])


def pascal(parts: list[str]) -> str:
    return "".join(p.capitalize() for p in parts[:MAX_NAME_WORDS] if p)


def kebab(text: str) -> str:
    return "-".join(words(text)[:MAX_NAME_WORDS])


def safe_method_name(name: str, prefix: str) -> str:
    """Prefix names that would be JavaScript keywords or start with a digit."""
    if not name or name in RESERVED_WORDS or name[0].isdigit():
        return prefix + name[:1].upper() + name[1:]
    return name


def unique_name(name: str, taken: set[str]) -> str:
    """Return name, or name with the smallest numeric suffix not yet taken."""
    if name not in taken:
        taken.add(name)
        return name
    suffix = 2
    while f"{name}{suffix}" in taken:
        suffix += 1
    result = f"{name}{suffix}"
    taken.add(result)
    return result
