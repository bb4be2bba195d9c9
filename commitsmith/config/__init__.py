"""Configuration Management Package"""

import json
import re
import sys
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Optional

# Valid configuration values
VALID_PROVIDERS = {"auto", "claude", "ollama"}
VALID_STYLES = {"simple", "conventional", "detailed"}
VALID_CHANGELOG_FORMATS = {"markdown", "json", "plain"}

DEFAULT_BRANCH_PATTERN = r"[A-Z]+-\d+"

# Positive integer settings checked by validate()
_POSITIVE_INTS = ("max_subject_length", "max_file_display", "learn_style_commits")


@dataclass
class Config:
    """User configuration with sensible defaults."""
    provider: str = "auto"
    model: Optional[str] = None
    style: str = "conventional"
    include_body: bool = True
    max_subject_length: int = 72
    ticket_prefix: str = "Refs"
    max_file_display: int = 8  # Max files shown before collapsing list
    language: Optional[str] = "en"
    ignore_paths: list[str] = field(default_factory=list)
    token_budget: Optional[int] = None  # Overrides the provider's own context size
    branch_prefix: bool = True
    branch_pattern: str = DEFAULT_BRANCH_PATTERN
    learn_style: bool = True
    learn_style_commits: int = 50
    changelog_format: str = "markdown"
    changelog_output: str = "CHANGELOG.md"
    changelog_exclude: list[str] = field(default_factory=list)  # Regexes matched against subjects

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def validate(self) -> list[str]:
        """Validate config values and return list of warnings.

        Invalid values are replaced with defaults silently after warning.
        """
        warnings = []
        defaults = Config()

        if self.provider not in VALID_PROVIDERS:
            warnings.append(f"Invalid provider '{self.provider}', using '{defaults.provider}'")
            self.provider = defaults.provider

        if self.style not in VALID_STYLES:
            warnings.append(f"Invalid style '{self.style}', using '{defaults.style}'")
            self.style = defaults.style

        for name in _POSITIVE_INTS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                default = getattr(defaults, name)
                warnings.append(f"Invalid {name} '{value}', using {default}")
                setattr(self, name, default)

        if self.token_budget is not None and (
            isinstance(self.token_budget, bool) or not isinstance(self.token_budget, int) or self.token_budget <= 0
        ):
            warnings.append(f"Invalid token_budget '{self.token_budget}', using the provider default")
            self.token_budget = None

        if not isinstance(self.ignore_paths, list) or not all(isinstance(p, str) for p in self.ignore_paths):
            warnings.append(f"Invalid ignore_paths '{self.ignore_paths}', expected a list of strings")
            self.ignore_paths = []

        try:
            re.compile(self.branch_pattern)
        except (re.error, TypeError):
            warnings.append(f"Invalid branch_pattern '{self.branch_pattern}', using '{defaults.branch_pattern}'")
            self.branch_pattern = defaults.branch_pattern

        if self.changelog_format not in VALID_CHANGELOG_FORMATS:
            warnings.append(f"Invalid changelog_format '{self.changelog_format}', using '{defaults.changelog_format}'")
            self.changelog_format = defaults.changelog_format

        if not isinstance(self.changelog_output, str) or not self.changelog_output:
            warnings.append(f"Invalid changelog_output '{self.changelog_output}', using '{defaults.changelog_output}'")
            self.changelog_output = defaults.changelog_output

        if not isinstance(self.changelog_exclude, list):
            warnings.append(f"Invalid changelog_exclude '{self.changelog_exclude}', expected a list of regexes")
            self.changelog_exclude = []
        for pattern in list(self.changelog_exclude):
            try:
                re.compile(pattern)
            except (re.error, TypeError):
                warnings.append(f"Invalid changelog_exclude pattern '{pattern}', skipping it")
                self.changelog_exclude.remove(pattern)

        return warnings

    def merged_with(self, data: dict) -> 'Config':
        """Overlay another config file's values; ignore_paths accumulate."""
        merged = asdict(self)
        for key, value in _known_keys(data).items():
            if key == "ignore_paths" and isinstance(value, list):
                merged[key] = [*merged[key], *value]
            else:
                merged[key] = value
        return Config.from_dict(merged)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        config = cls(**_known_keys(data))
        # Validate and print warnings to stderr
        for warning in config.validate():
            print(f"Config warning: {warning}", file=sys.stderr)
        return config


def _known_keys(data: dict) -> dict:
    valid_keys = {f.name for f in fields(Config)}
    return {k: v for k, v in data.items() if k in valid_keys}


class ConfigManager:
    """Loads the global (~) and project config files and saves new ones."""

    CONFIG_FILENAME = ".commitsmithrc"

    def __init__(self, project_root: Optional[Path] = None):
        self.project_root = project_root
        self._config: Optional[Config] = None
        self._config_paths: list[Path] = []

    def load(self) -> Config:
        if self._config is not None:
            return self._config

        config = Config()
        candidates = [Path.home() / self.CONFIG_FILENAME, self._project_dir() / self.CONFIG_FILENAME]
        for path in dict.fromkeys(candidates):
            if not path.exists():
                continue
            data = self._read_file(path)
            if data is not None:
                config = config.merged_with(data)
                self._config_paths.append(path)

        self._config = config
        return self._config

    def _project_dir(self) -> Path:
        return self.project_root or Path.cwd()

    def _read_file(self, path: Path) -> Optional[dict]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            print(f"Warning: Could not load {path}: {e}", file=sys.stderr)
            return None
        if not isinstance(data, dict):
            print(f"Warning: Could not load {path}: expected a JSON object", file=sys.stderr)
            return None
        return data

    def save(self, config: Config, global_config: bool = True) -> Path:
        base = Path.home() if global_config else self._project_dir()
        path = base / self.CONFIG_FILENAME
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
        return path

    def get_config_paths(self) -> list[Path]:
        return list(self._config_paths)


def load_config(project_root: Optional[Path] = None) -> Config:
    return ConfigManager(project_root).load()


def save_config(config: Config, global_config: bool = True) -> Path:
    return ConfigManager().save(config, global_config)


__all__ = [
    "Config",
    "ConfigManager",
    "load_config",
    "save_config",
    "VALID_PROVIDERS",
    "VALID_STYLES",
    "VALID_CHANGELOG_FORMATS",
    "DEFAULT_BRANCH_PATTERN",
]
