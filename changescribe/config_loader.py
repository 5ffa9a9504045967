"""
Configuration loader for CHANGESCRIBE.
Merges defaults with per-repo .changescribe/config.yaml overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from changescribe.errors import ConfigError


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class SubmitConfig(BaseModel):
    base_branch: str = "main"
    draft: bool = False
    reviewers: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    push_branch: bool = True
    remote: str = "origin"

    @field_validator("reviewers", "labels")
    @classmethod
    def _dedupe(cls, values: list[str]) -> list[str]:
        return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


class InterventionConfig(BaseModel):
    confirm_missing_ticket: bool = True
    confirm_inferred_ticket: bool = True


class ChangeScribeConfig(BaseModel):
    submit: SubmitConfig = Field(default_factory=SubmitConfig)
    intervention: InterventionConfig = Field(default_factory=InterventionConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"
REPO_CONFIG = Path(".changescribe") / "config.yaml"

_ENV_OVERRIDES = {
    "CHANGESCRIBE_BASE_BRANCH": ("submit", "base_branch"),
    "CHANGESCRIBE_DRAFT": ("submit", "draft"),
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    return data


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


def load_config(repo_path: Path | None = None) -> ChangeScribeConfig:
    """
    Load config by merging:
      1. Built-in defaults (changescribe/config.yaml)
      2. Repo-level overrides (<repo>/.changescribe/config.yaml)
      3. Environment variable overrides (CHANGESCRIBE_*)
    """
    base = _read_yaml(_DEFAULT_CONFIG_PATH)

    if repo_path:
        repo_config = repo_path / REPO_CONFIG
        if repo_config.exists():
            base = _deep_merge(base, _read_yaml(repo_config))

    base = _deep_merge(base, _env_overrides())

    try:
        return ChangeScribeConfig(**base)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
