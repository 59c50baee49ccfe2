"""Page, component and method structure inference."""

from pom_analyzer.structure.component_detector import (
    ComponentDetectionResult,
    detect_components,
    infer_component_type,
    score_component,
)
from pom_analyzer.structure.method_grouper import (
    COMPLEXITY_HIGH_WATER_MARK,
    MethodGroupingResult,
    suggest_methods,
)
from pom_analyzer.structure.page_detector import PageDetectionResult, detect_pages
from pom_analyzer.structure.urls import same_page, url_pattern

__all__ = [
    # Pages
    "PageDetectionResult",
    "detect_pages",
    "same_page",
    "url_pattern",
    # Components
    "ComponentDetectionResult",
    "detect_components",
    "infer_component_type",
    "score_component",
    # Methods
    "COMPLEXITY_HIGH_WATER_MARK",
    "MethodGroupingResult",
    "suggest_methods",
]
