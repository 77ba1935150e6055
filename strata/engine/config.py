"""Configuration loaded from defaults, environment variables and YAML.

All settings have sensible defaults. Override via STRATA_* env vars or a
YAML file (``.strata/strata.yaml`` preferred, ``strata.yaml`` legacy).

Example YAML:
    engine:
      event_queue_size: 5000
      cancel_timeout_seconds: 10
      default_cwd: /path/to/project
      permission_mode: acceptEdits
      model: claude-sonnet-4-5-20250929

    limits:
      preview_lines: 20
      stdout_chars: 2000
      stderr_chars: 500
      max_filenames: 15
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from strata.shared.formatters.tool_activity import TruncationLimits
from strata.shared.models.session import DEFAULT_MODEL, PermissionMode

logger = logging.getLogger(__name__)


@dataclass
class StrataConfig:
    """Coordination core configuration."""

    # Truncation caps applied to tool results before storage
    limits: TruncationLimits = field(default_factory=TruncationLimits)

    # Transport -> coordination hand-off
    event_queue_size: int = 5000
    # How long a full queue may block a producer before the event is dropped
    put_timeout_seconds: float = 30.0

    # Force a cancelling session back to idle after this long.
    # Set to 0 (or a negative value) to disable.
    cancel_timeout_seconds: float = 0.0

    default_cwd: str | None = None
    shell_path: str | None = None

    # Defaults for new Claude sessions, forwarded to the transport
    permission_mode: str = PermissionMode.DEFAULT.value
    model: str = DEFAULT_MODEL

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> StrataConfig:
        """Load configuration from STRATA_* environment variables."""
        strata_vars = {
            k: v for k, v in os.environ.items() if k.startswith("STRATA_")
        }
        if strata_vars:
            logger.info(
                "StrataConfig.from_env: STRATA_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(strata_vars.items())),
            )
        else:
            logger.debug("StrataConfig.from_env: no STRATA_* env vars set, using defaults")

        base = TruncationLimits()
        limits = TruncationLimits(
            preview_lines=int(os.getenv(
                "STRATA_PREVIEW_LINES", str(base.preview_lines)
            )),
            stdout_chars=int(os.getenv(
                "STRATA_STDOUT_CHARS", str(base.stdout_chars)
            )),
            stderr_chars=int(os.getenv(
                "STRATA_STDERR_CHARS", str(base.stderr_chars)
            )),
            max_filenames=int(os.getenv(
                "STRATA_MAX_FILENAMES", str(base.max_filenames)
            )),
        )
        config = cls(
            limits=limits,
            event_queue_size=int(os.getenv(
                "STRATA_QUEUE_SIZE", str(cls.event_queue_size)
            )),
            put_timeout_seconds=float(os.getenv(
                "STRATA_PUT_TIMEOUT", str(cls.put_timeout_seconds)
            )),
            cancel_timeout_seconds=float(os.getenv(
                "STRATA_CANCEL_TIMEOUT", str(cls.cancel_timeout_seconds)
            )),
            default_cwd=os.getenv("STRATA_DEFAULT_CWD") or None,
            shell_path=os.getenv("STRATA_SHELL") or None,
            permission_mode=os.getenv(
                "STRATA_PERMISSION_MODE", cls.permission_mode
            ),
            model=os.getenv("STRATA_MODEL") or cls.model,
            log_level=os.getenv("STRATA_LOG_LEVEL", cls.log_level),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError for settings the core cannot honour."""
        for f in fields(self.limits):
            if getattr(self.limits, f.name) < 1:
                raise ValueError(f"limits.{f.name} must be >= 1")
        if self.event_queue_size < 1:
            raise ValueError("event_queue_size must be >= 1")
        valid_modes = {m.value for m in PermissionMode}
        if self.permission_mode not in valid_modes:
            raise ValueError(
                f"permission_mode must be one of {sorted(valid_modes)}, "
                f"got {self.permission_mode!r}"
            )


_ENGINE_KEYS = {
    "event_queue_size": int,
    "put_timeout_seconds": float,
    "cancel_timeout_seconds": float,
    "default_cwd": str,
    "shell_path": str,
    "permission_mode": str,
    "model": str,
    "log_level": str,
}


def load_yaml_config(path: str | Path, base: StrataConfig | None = None) -> StrataConfig:
    """Load a YAML config file and overlay it on *base* (or env config)."""
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    config = base or StrataConfig.from_env()
    logger.info(
        "Parsed YAML config %s — sections: %s",
        path.name, ", ".join(sorted(raw)) or "(empty)",
    )

    engine = raw.get("engine") or {}
    overrides = {}
    for key, cast in _ENGINE_KEYS.items():
        if key in engine and engine[key] is not None:
            overrides[key] = cast(engine[key])
    unknown = set(engine) - set(_ENGINE_KEYS)
    if unknown:
        logger.warning("Ignoring unknown engine keys in %s: %s", path, sorted(unknown))

    limits_raw = raw.get("limits") or {}
    limit_names = {f.name for f in fields(TruncationLimits)}
    limit_overrides = {
        k: int(v) for k, v in limits_raw.items() if k in limit_names and v is not None
    }
    if limit_overrides:
        overrides["limits"] = replace(config.limits, **limit_overrides)

    config = replace(config, **overrides)
    config.validate()
    return config


def discover_config(cwd: Path) -> Path | None:
    """Return ``.strata/strata.yaml`` or ``strata.yaml`` under *cwd*, if any."""
    for candidate in (cwd / ".strata" / "strata.yaml", cwd / "strata.yaml"):
        if candidate.exists():
            logger.info("Auto-discovered config: %s", candidate)
            return candidate
    return None
