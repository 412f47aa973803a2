# Copyright 2026 Pennyworth Technologies, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Configuration system for the table data engine.

Provides layered configuration with precedence:
1. Environment variables (highest)
2. Project config file (passed explicitly)
3. Global config (~/.tabledata_config.json)
4. Hardcoded defaults (lowest)
"""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Hardcoded defaults
DEFAULT_MAX_DEPTH = 10
DEFAULT_TOTAL_LABEL = "Total"
DEFAULT_UNSPECIFIED_LABEL = "unspecified"
DEFAULT_ROW_THRESHOLD = 50

# Environment variable names
ENV_MAX_DEPTH = "TABLEDATA_MAX_DEPTH"
ENV_TOTAL_LABEL = "TABLEDATA_TOTAL_LABEL"
ENV_UNSPECIFIED_LABEL = "TABLEDATA_UNSPECIFIED_LABEL"
ENV_ROW_THRESHOLD = "TABLEDATA_ROW_THRESHOLD"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


class ConfigLoadError(Exception):
    """Raised when configuration file cannot be loaded."""

    pass


@dataclass
class EngineConfig:
    """Engine-wide settings, independent of any single widget."""

    max_depth: int = DEFAULT_MAX_DEPTH
    total_label: str = DEFAULT_TOTAL_LABEL
    unspecified_label: str = DEFAULT_UNSPECIFIED_LABEL
    row_threshold: int = DEFAULT_ROW_THRESHOLD
    # Settings a config file set explicitly, even to their default value
    explicit_fields: frozenset[str] = field(default=frozenset(), repr=False, compare=False)

    def validate(self) -> None:
        """Validate configuration values."""
        if not isinstance(self.max_depth, int) or self.max_depth < 1:
            raise ConfigValidationError(
                f"max_depth must be a positive integer, got {self.max_depth!r}"
            )
        if not isinstance(self.row_threshold, int) or self.row_threshold < 0:
            raise ConfigValidationError(
                f"row_threshold must be a non-negative integer, got {self.row_threshold!r}"
            )
        if not self.total_label:
            raise ConfigValidationError("total_label must not be empty")
        if not self.unspecified_label:
            raise ConfigValidationError("unspecified_label must not be empty")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "max_depth": self.max_depth,
            "total_label": self.total_label,
            "unspecified_label": self.unspecified_label,
            "row_threshold": self.row_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], strict: bool = False) -> "EngineConfig":
        """Create from dictionary."""
        if strict:
            known_fields = set(SETTING_NAMES)
            unknown = set(data.keys()) - known_fields
            if unknown:
                raise ConfigValidationError(
                    f"Unknown fields in config: {', '.join(sorted(unknown))}"
                )

        return cls(
            max_depth=data.get("max_depth", DEFAULT_MAX_DEPTH),
            total_label=data.get("total_label", DEFAULT_TOTAL_LABEL),
            unspecified_label=data.get("unspecified_label", DEFAULT_UNSPECIFIED_LABEL),
            row_threshold=data.get("row_threshold", DEFAULT_ROW_THRESHOLD),
            explicit_fields=frozenset(k for k in data if k in SETTING_NAMES),
        )


SETTING_NAMES = tuple(f.name for f in fields(EngineConfig) if f.name != "explicit_fields")


def get_global_config_path() -> Path:
    """Get path to global config file."""
    return Path.home() / ".tabledata_config.json"


def load_config_file(path: Path, strict: bool = False) -> EngineConfig:
    """Load configuration from a JSON file.

    Args:
        path: Path to the config file
        strict: If True, fail on unknown fields

    Returns:
        EngineConfig instance (defaults if the file does not exist)

    Raises:
        ConfigLoadError: If file cannot be read or parsed
        ConfigValidationError: If strict=True and unknown fields found
    """
    if not path.exists():
        return EngineConfig()

    try:
        content = path.read_text()
    except OSError as e:
        raise ConfigLoadError(f"Error reading {path}: {e}")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigLoadError(f"Invalid JSON in {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Expected a JSON object in {path}")

    return EngineConfig.from_dict(data, strict=strict)


def merge_configs(*configs: EngineConfig) -> EngineConfig:
    """Merge configs with later configs taking precedence.

    A later config overrides the values its file set explicitly, plus any
    value that differs from the hardcoded defaults, so a partial config file
    layers over the global one.
    """
    if not configs:
        return EngineConfig()

    result = copy.deepcopy(configs[0])
    defaults = EngineConfig()

    for config in configs[1:]:
        for name in SETTING_NAMES:
            value = getattr(config, name)
            if name in config.explicit_fields or value != getattr(defaults, name):
                setattr(result, name, value)
        result.explicit_fields = result.explicit_fields | config.explicit_fields

    return result


def _int_from_env(name: str) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigValidationError(f"{name} must be an integer, got '{raw}'")


def apply_env_overrides(config: EngineConfig) -> EngineConfig:
    """Apply environment variable overrides to config.

    Raises:
        ConfigValidationError: If an env var value is invalid
    """
    result = copy.deepcopy(config)

    if (max_depth := _int_from_env(ENV_MAX_DEPTH)) is not None:
        result.max_depth = max_depth

    if (row_threshold := _int_from_env(ENV_ROW_THRESHOLD)) is not None:
        result.row_threshold = row_threshold

    if total_label := os.environ.get(ENV_TOTAL_LABEL):
        result.total_label = total_label

    if unspecified_label := os.environ.get(ENV_UNSPECIFIED_LABEL):
        result.unspecified_label = unspecified_label

    return result


def get_config(project_config: Path | None = None) -> EngineConfig:
    """Load and merge configuration from all sources.

    Args:
        project_config: Optional path to a project-level config file

    Returns:
        Validated configuration with all overrides applied
    """
    global_config = load_config_file(get_global_config_path())

    local_config = EngineConfig()
    if project_config is not None:
        local_config = load_config_file(project_config)

    merged = apply_env_overrides(merge_configs(EngineConfig(), global_config, local_config))
    merged.validate()
    logger.debug("Engine config: %s", merged.to_dict())
    return merged
