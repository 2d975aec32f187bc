"""Load and save engine configuration from `.knot/config.yaml`."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .constants import (
    CONFIG_FILE,
    DEFAULT_COMPLEXITY_THRESHOLD,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_DESCRIPTION_LENGTH,
    DEFAULT_MAX_TASKS_PER_DEPTH,
    DEFAULT_MAX_TITLE_LENGTH,
    MAX_COMPLEXITY,
    MIN_COMPLEXITY,
    STATE_DIR_NAME,
)
from .errors import ValidationError
from .io_utils import _atomic_write_yaml, _load_yaml_with_error


@dataclass
class EngineConfig:
    """Limits and policies applied by the engine components."""

    max_tasks_per_depth: int = DEFAULT_MAX_TASKS_PER_DEPTH
    max_depth: int = DEFAULT_MAX_DEPTH
    complexity_threshold: int = DEFAULT_COMPLEXITY_THRESHOLD
    max_description_length: int = DEFAULT_MAX_DESCRIPTION_LENGTH
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH
    strict_transitions: bool = True
    auto_reduce_complexity: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Build a config from *data*, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, raw in data.items():
            if key not in known or raw is None:
                continue
            if isinstance(getattr(cls, key), bool):
                if not isinstance(raw, bool):
                    raise ValidationError(key, f"expected a boolean, got {raw!r}")
                values[key] = raw
            else:
                if isinstance(raw, bool) or not isinstance(raw, int):
                    raise ValidationError(key, f"expected an integer, got {raw!r}")
                values[key] = raw
        return cls(**values)


def validate_engine_config(config: EngineConfig) -> None:
    """Raise :class:`ValidationError` when a limit is out of range."""
    if config.max_tasks_per_depth < 1:
        raise ValidationError("max_tasks_per_depth", "must be at least 1")
    if config.max_depth < 1:
        raise ValidationError("max_depth", "must be at least 1")
    if not MIN_COMPLEXITY <= config.complexity_threshold <= MAX_COMPLEXITY:
        raise ValidationError(
            "complexity_threshold",
            f"must be between {MIN_COMPLEXITY} and {MAX_COMPLEXITY}",
        )
    if config.max_description_length < 1:
        raise ValidationError("max_description_length", "must be at least 1")
    if config.max_title_length < 1:
        raise ValidationError("max_title_length", "must be at least 1")


def config_path(project_dir: Path) -> Path:
    return project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE


def load_engine_config(project_dir: Path) -> tuple[EngineConfig, str | None]:
    """Load the optional engine config file.

    Args:
        project_dir: Directory holding the `.knot/` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns
        the defaults and `None`. If it is unreadable or invalid, returns the
        defaults together with a description of the problem.
    """
    path = config_path(project_dir)
    data, err = _load_yaml_with_error(path, {})
    if err:
        return EngineConfig(), err
    raw = data.get("engine", data)
    if not isinstance(raw, dict):
        return EngineConfig(), f"{path.name}: 'engine' must be a mapping"
    try:
        config = EngineConfig.from_dict(raw)
        validate_engine_config(config)
    except ValidationError as exc:
        return EngineConfig(), f"{path.name}: {exc}"
    return config, None


def save_engine_config(project_dir: Path, config: EngineConfig) -> Path:
    """Validate and atomically write *config*; returns the file path."""
    validate_engine_config(config)
    path = config_path(project_dir)
    _atomic_write_yaml(path, {"engine": config.to_dict()})
    return path
