"""Configuration loader with 3-tier parameter precedence."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import ValidationError
from .defaults import DefaultConfig, get_default_config
from .validation import CONFIG_SECTIONS, ConfigValidator

CONFIG_FILE_NAME = "daowiz.yaml"


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Path] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance.

        Without an explicit directory the current working directory is
        searched for a `daowiz.yaml` file.
        """
        if config_dir is None:
            config_dir = Path.cwd()

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def load_file_config(self) -> dict[str, Any]:
        """Load file-level overrides from `daowiz.yaml`, if present."""
        config_file = self.config_dir / CONFIG_FILE_NAME

        if not config_file.exists():
            return {}

        with open(config_file) as f:
            file_config = yaml.safe_load(f)

        if file_config is None:
            return {}
        if not isinstance(file_config, dict):
            raise ValidationError(
                f"{config_file} must contain a mapping",
                field=CONFIG_FILE_NAME,
                value=type(file_config).__name__,
            )
        return file_config

    def merge_config(
        self,
        overrides: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides (highest priority)
        2. `daowiz.yaml` in the config directory
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_file_config())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load(self, overrides: Optional[dict[str, Any]] = None) -> DefaultConfig:
        """Merge, validate and rebuild the typed configuration.

        Raises:
            ValidationError: If a section or parameter is unknown or invalid
        """
        merged = self.merge_config(overrides)

        issues = ConfigValidator.validate(merged)
        if issues:
            first = issues[0]
            raise ValidationError(
                "; ".join(f"{i.field}: {i.message} (got: {i.value!r})" for i in issues),
                field=first.field,
                value=first.value,
            )

        sections = {}
        for name, params_cls in CONFIG_SECTIONS.items():
            known = {f.name for f in fields(params_cls)}
            sections[name] = params_cls(**{
                k: v for k, v in merged.get(name, {}).items() if k in known
            })
        return DefaultConfig(**sections)

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
