"""Selector classification and fragility scoring."""

from pom_analyzer.locators.classifier import (
    classify_selector,
    normalize_selector,
    parse_css,
    parse_xpath,
    selector_root,
)
from pom_analyzer.locators.fragility import (
    STABILITY_THRESHOLD,
    assess_selector,
    derive_content,
    detect_signals,
    infer_role,
    score_selector,
    suggest_improvements,
)

__all__ = [
    # Classification
    "classify_selector",
    "normalize_selector",
    "parse_css",
    "parse_xpath",
    "selector_root",
    # Fragility
    "STABILITY_THRESHOLD",
    "assess_selector",
    "derive_content",
    "detect_signals",
    "infer_role",
    "score_selector",
    "suggest_improvements",
]
