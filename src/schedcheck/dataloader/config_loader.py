# src/schedcheck/dataloader/config_loader.py
from __future__ import annotations

import logging
import os
from collections import Counter
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from schedcheck.errors import ConfigError
from schedcheck.schemas.models import Config

logger = logging.getLogger(__name__)

# characters that would corrupt the delimited export if used to join list cells
_FORBIDDEN_SEPARATOR_CHARS = {'"', "\n", "\r"}


class ConfigLoader:
    """
    @brief
    Builds the runtime `Config` from an optional YAML file.

    @details
    Every section (validation, export, translator, priorities) is optional.
    Without a file, or with an empty one, the built-in defaults apply. After
    schema validation the loader checks settings that only make sense
    together: unique priority names, a usable export separator and a
    translator whose API key is actually present.
    """

    SUFFIXES = (".yaml", ".yml")

    def load(self, path: Path | str | None = None) -> Config:
        """
        @brief
        Load configuration, falling back to defaults when no path is given.

        @raises
            ConfigError
                On a missing or unreadable file, bad YAML, unknown keys,
                out-of-range values or inconsistent settings.
        """
        if path is None:
            logger.info("No config file given, using built-in defaults")
            cfg = Config()
        else:
            path = Path(path)
            cfg = self._validate(self._read_yaml(path), path)
            logger.info("Config loaded: %s", path)

        self._check_priorities(cfg)
        self._check_export(cfg)
        self._check_translator(cfg)
        return cfg

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        # (1) File presence and type
        if not path.is_file():
            raise ConfigError(
                message=f"Configuration file not found: {path}",
                source="ConfigLoader._read_yaml",
                suggested_action="Fix the --config path, or drop --config to run with defaults.",
            )
        if path.suffix.lower() not in self.SUFFIXES:
            raise ConfigError(
                message=f"Invalid configuration file extension: {path.suffix}",
                source="ConfigLoader._read_yaml",
                suggested_action="Use a .yaml or .yml file.",
            )

        # (2) Parse
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(
                message=f"YAML parsing failed: {e}",
                source="ConfigLoader._read_yaml",
                suggested_action="Fix YAML syntax/indentation.",
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(
                message=f"Unable to read configuration file: {e}",
                source="ConfigLoader._read_yaml",
            ) from e

        # (3) An all-comment file means "no overrides"
        if data is None:
            logger.info("Config file %s is empty, using built-in defaults", path)
            return {}
        if not isinstance(data, Mapping):
            raise ConfigError(
                message="Configuration root must be a mapping of sections.",
                source="ConfigLoader._read_yaml",
                suggested_action="Use top-level keys: validation, export, translator, priorities.",
            )
        return dict(data)

    def _validate(self, data: dict[str, Any], path: Path) -> Config:
        try:
            return Config.model_validate(data)
        except ValidationError as e:
            raise ConfigError(
                message=f"Invalid configuration structure in {path}: {e}",
                source="ConfigLoader._validate",
                suggested_action=(
                    "Check section and field names; unknown keys are rejected. "
                    "Priority weights must be within 0..100."
                ),
            ) from e

    def _check_priorities(self, cfg: Config) -> None:
        if not cfg.priorities:
            return
        repeated = sorted(n for n, c in Counter(p.name for p in cfg.priorities).items() if c > 1)
        if repeated:
            raise ConfigError(
                message=f"Duplicate priority names: {', '.join(repeated)}",
                source="ConfigLoader._check_priorities",
                suggested_action="Give each priority criterion a unique name.",
            )

    def _check_export(self, cfg: Config) -> None:
        sep = cfg.export.array_separator
        if not sep or _FORBIDDEN_SEPARATOR_CHARS & set(sep):
            raise ConfigError(
                message=f"Unusable export.array_separator: {sep!r}",
                source="ConfigLoader._check_export",
                suggested_action="Use a non-empty separator without quotes or line breaks.",
            )

    def _check_translator(self, cfg: Config) -> None:
        tr = cfg.translator
        if tr.provider == "openai" and not (os.getenv(tr.api_key_env) or "").strip():
            logger.warning(
                "translator.provider is 'openai' but %s is not set; search will use substring matching",
                tr.api_key_env,
            )


__all__ = ["ConfigLoader"]
