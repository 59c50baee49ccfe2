"""Main analyzer that orchestrates the analysis pipeline."""

import logging
from pathlib import Path

from pom_analyzer.assertion_classifier import classify_assertions
from pom_analyzer.binder import bind_pages
from pom_analyzer.config import AnalyzerConfig
from pom_analyzer.extractor import ScriptParseError, extract_statements
from pom_analyzer.models import AnalysisResult
from pom_analyzer.reporter import ReportInput, build_report
from pom_analyzer.structure import detect_components, detect_pages, suggest_methods

logger = logging.getLogger(__name__)


def analyze_script(
    text: str,
    config: AnalyzerConfig | None = None,
    source_name: str | None = None,
) -> AnalysisResult:
    """Analyze a Playwright test script into a page object model document.

    Stages run strictly in order; each consumes the complete output of the
    previous one.

    Args:
        text: Raw script text
        config: Analyzer configuration, defaults when omitted
        source_name: Name recorded in the output metadata

    Returns:
        AnalysisResult containing pages, components, methods and reports

    Raises:
        ScriptParseError: If the script contains nothing that can be analyzed
    """
    config = config or AnalyzerConfig()
    logger.info(f"Starting analysis of {source_name or '<script>'}")

    if not text.strip():
        raise ScriptParseError("Script is empty")

    statements = extract_statements(text)

    detection = detect_pages(statements, config.page_detection)
    binding = bind_pages(detection.segments, config)
    assertion_warnings = classify_assertions(binding.pages)

    components = detect_components(binding.pages, config.component_detection)
    grouping = suggest_methods(
        binding.pages,
        components.components,
        components.usages,
        config.method_grouping,
    )

    result = build_report(
        ReportInput(
            text=text,
            statements=statements,
            pages=binding.pages,
            components=components.components,
            usages=components.usages,
            methods=grouping.methods,
            config=config,
            source_name=source_name,
            warnings=[
                *detection.warnings,
                *binding.warnings,
                *assertion_warnings,
                *grouping.warnings,
            ],
            component_recommendations=components.recommendations,
        )
    )
    logger.info(
        f"Analysis complete: {len(result.pages)} pages, "
        f"{len(result.components)} components, {len(result.warnings)} warnings"
    )
    return result


def analyze_file(path: Path, config: AnalyzerConfig | None = None) -> AnalysisResult:
    """Read a script file and analyze it.

    Raises:
        OSError: If the file cannot be read
        ScriptParseError: If the script contains nothing that can be analyzed
    """
    text = path.read_text(encoding="utf-8")
    return analyze_script(text, config=config, source_name=str(path))
