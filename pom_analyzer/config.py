"""Pydantic configuration models for the analysis pipeline."""

import json
import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

Strategy = Literal["testid", "role", "text", "placeholder", "css", "xpath"]

DEFAULT_PREFERRED_STRATEGIES: list[str] = [
    "testid",
    "role",
    "text",
    "placeholder",
    "css",
    "xpath",
]


class ConfigError(Exception):
    """Error loading or validating configuration."""


class PageDetectionConfig(BaseModel):
    """How statements are partitioned into pages."""

    model_config = ConfigDict(extra="ignore")

    url_change_creates_new_page: bool = Field(
        default=True,
        description="Open a page boundary when waitForURL targets a different URL",
    )
    modal_detection: Literal["component", "page"] = Field(
        default="component",
        description="Treat modal dialogs as part of the host page or as their own page",
    )
    tab_switch_creates_new_page: bool = Field(
        default=False,
        description="Open a low-confidence boundary on tab/accordion switches",
    )
    url_change_threshold: Literal["full", "path", "domain"] = Field(
        default="path",
        description="Which part of the URL must change to count as a new page",
    )


class ComponentDetectionConfig(BaseModel):
    """How recurring action patterns are promoted to components."""

    model_config = ConfigDict(extra="ignore")

    min_appearances_for_component: int = Field(
        default=2,
        ge=1,
        description="Distinct pages a pattern must appear on",
    )
    detect_headers: bool = Field(default=True, description="Emit header components")
    detect_footers: bool = Field(default=True, description="Emit footer components")
    detect_modals: bool = Field(default=True, description="Emit modal components")
    detect_navigation: bool = Field(
        default=True, description="Emit navigation/menu components"
    )


class MethodGroupingConfig(BaseModel):
    """How page actions are grouped into suggested methods."""

    model_config = ConfigDict(extra="ignore")

    max_actions_per_method: int = Field(
        default=8,
        ge=1,
        description="Maximum number of items grouped into one method",
    )
    group_related_fills: bool = Field(
        default=True,
        description="Group consecutive form fills with their submit action",
    )
    separate_navigation: bool = Field(
        default=True,
        description="Give navigation statements their own method",
    )
    separate_assertions: bool = Field(
        default=True,
        description="Keep assertions out of action methods",
    )


class SelectorAnalysisConfig(BaseModel):
    """How selectors are scored and improved."""

    model_config = ConfigDict(extra="ignore")

    suggest_improvements: bool = Field(
        default=True,
        description="Generate improvement candidates for fragile selectors",
    )
    preferred_strategies: list[Strategy] = Field(
        default_factory=lambda: list(DEFAULT_PREFERRED_STRATEGIES),
        description="Order in which replacement strategies are proposed",
    )
    flag_fragile_selectors: bool = Field(
        default=True,
        description="Report fragile selectors as quality recommendations",
    )

    @field_validator("preferred_strategies")
    @classmethod
    def dedupe_strategies(cls, v: list[str]) -> list[str]:
        """Drop repeated strategies, keeping the first position."""
        seen: list[str] = []
        for strategy in v:
            if strategy not in seen:
                seen.append(strategy)
        return seen


class AnalyzerConfig(BaseModel):
    """Root configuration model combining all sections."""

    model_config = ConfigDict(extra="ignore")

    page_detection: PageDetectionConfig = Field(default_factory=PageDetectionConfig)
    component_detection: ComponentDetectionConfig = Field(
        default_factory=ComponentDetectionConfig
    )
    method_grouping: MethodGroupingConfig = Field(default_factory=MethodGroupingConfig)
    selector_analysis: SelectorAnalysisConfig = Field(
        default_factory=SelectorAnalysisConfig
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AnalyzerConfig":
        """Build a config from a plain mapping, raising ConfigError on bad values."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AnalyzerConfig:
    """Load configuration from a JSON or YAML file with optional overrides.

    Priority (highest to lowest):
    1. Overrides
    2. Config file
    3. Defaults
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        logger.info(f"Loading configuration from {config_path}")
        try:
            with open(config_path, encoding="utf-8") as f:
                if config_path.suffix in {".yaml", ".yml"}:
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not parse {config_path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")

    if overrides:
        config_data = _deep_merge(config_data, overrides)

    return AnalyzerConfig.from_dict(config_data)
