"""Statement extraction from Playwright test scripts."""

from pom_analyzer.extractor.call_parser import (
    CallChain,
    CallSegment,
    parse_chain,
    parse_literal,
    parse_object_literal,
    split_top_level,
)
from pom_analyzer.extractor.statement_extractor import (
    ScriptParseError,
    extract_statements,
)

__all__ = [
    # Call parsing
    "CallChain",
    "CallSegment",
    "parse_chain",
    "parse_literal",
    "parse_object_literal",
    "split_top_level",
    # Statement extraction
    "ScriptParseError",
    "extract_statements",
]
