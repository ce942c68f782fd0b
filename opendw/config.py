"""
Configuration module for OpenDW.

This module provides configuration management for the OpenDW library:
logging, preprocessing defaults, propagation budgets and numerical
tolerances.

Configuration can be set via:
1. Environment variables (OPENDW_*)
2. Config file (~/.opendw/config.toml or ./opendw.toml)
3. Programmatic API

Example:
    >>> from opendw.config import config
    >>> config.max_propagation_pops = 10000
    >>> config.get_tolerance("integrality")
    1e-06
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value else None


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    return float(value) if value else None


def _parse_value(raw: str) -> Any:
    """Parse a TOML scalar: quoted string, boolean, integer or float."""
    raw = raw.strip()
    if raw.startswith('"') and raw.endswith('"'):
        return raw[1:-1]
    if raw in ("true", "false"):
        return raw == "true"
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw


@dataclass
class OpenDWConfig:
    """
    Configuration for the OpenDW library.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        preprocess_subproblems: Default for propagating inside pricing subproblems
        max_propagation_pops: Worklist pops allowed per preprocessing call
            (None = unlimited)
        max_propagation_time: Seconds allowed per preprocessing call
            (None = unlimited)
        max_bound_changes: Tightenings allowed per variable bound and
            preprocessing call
        tolerances: Numerical tolerances
    """

    # Logging
    log_level: str = field(
        default_factory=lambda: os.environ.get('OPENDW_LOG_LEVEL', "WARNING")
    )

    # Preprocessing
    preprocess_subproblems: bool = True
    max_propagation_pops: Optional[int] = field(
        default_factory=lambda: _env_int('OPENDW_MAX_PROPAGATION_POPS')
    )
    max_propagation_time: Optional[float] = field(
        default_factory=lambda: _env_float('OPENDW_MAX_PROPAGATION_TIME')
    )
    max_bound_changes: int = 20

    # Numerical tolerances
    tolerances: dict[str, float] = field(default_factory=lambda: {
        "integrality": 1e-6,
    })

    # =========================================================================
    # Tolerance helpers
    # =========================================================================

    def get_tolerance(self, name: str) -> float:
        """Get a tolerance value by name."""
        return self.tolerances.get(name, 1e-6)

    def set_tolerance(self, name: str, value: float) -> None:
        """Set a tolerance value."""
        self.tolerances[name] = value

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "log_level": self.log_level,
            "preprocess_subproblems": self.preprocess_subproblems,
            "max_propagation_pops": self.max_propagation_pops,
            "max_propagation_time": self.max_propagation_time,
            "max_bound_changes": self.max_bound_changes,
            "tolerances": self.tolerances.copy(),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> 'OpenDWConfig':
        """Create config from dictionary."""
        preprocess_subproblems = d.get("preprocess_subproblems", True)
        if isinstance(preprocess_subproblems, str):
            preprocess_subproblems = _parse_value(preprocess_subproblems.lower())
        tolerances = {"integrality": 1e-6}
        tolerances.update(d.get("tolerances", {}))
        return cls(
            log_level=d.get("log_level", "WARNING"),
            preprocess_subproblems=preprocess_subproblems,
            max_propagation_pops=d.get("max_propagation_pops"),
            max_propagation_time=d.get("max_propagation_time"),
            max_bound_changes=d.get("max_bound_changes", 20),
            tolerances=tolerances,
        )

    def save(self, path: Optional[Path] = None) -> None:
        """
        Save configuration to a TOML file.

        Args:
            path: Path to save to (default: ./opendw.toml)
        """
        if path is None:
            path = Path("opendw.toml")

        lines = [
            "# OpenDW Configuration",
            "",
            "[general]",
            f'log_level = "{self.log_level}"',
            "",
            "[preprocessing]",
            f"preprocess_subproblems = {str(self.preprocess_subproblems).lower()}",
            f"max_bound_changes = {self.max_bound_changes}",
        ]
        # Unlimited budgets are left out
        if self.max_propagation_pops is not None:
            lines.append(f"max_propagation_pops = {self.max_propagation_pops}")
        if self.max_propagation_time is not None:
            lines.append(f"max_propagation_time = {self.max_propagation_time}")

        lines.extend(["", "[tolerances]"])
        for name, value in self.tolerances.items():
            lines.append(f"{name} = {value}")

        path.write_text("\n".join(lines))

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'OpenDWConfig':
        """
        Load configuration from a TOML file.

        Args:
            path: Path to load from (default: ./opendw.toml or ~/.opendw/config.toml)

        Returns:
            Loaded configuration (or default if file not found)
        """
        if path is None:
            local_config = Path("opendw.toml")
            user_config = Path.home() / ".opendw" / "config.toml"

            if local_config.exists():
                path = local_config
            elif user_config.exists():
                path = user_config
            else:
                return cls()

        if not path.exists():
            return cls()

        config_dict: dict[str, Any] = {"tolerances": {}}
        section = config_dict
        for raw_line in path.read_text().splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line:
                continue
            if line.startswith("["):
                # [general] and [preprocessing] hold top-level keys
                section = (
                    config_dict["tolerances"] if line == "[tolerances]" else config_dict
                )
            elif "=" in line:
                key, value = line.split("=", 1)
                section[key.strip()] = _parse_value(value)

        return cls.from_dict(config_dict)


# Global configuration instance
config = OpenDWConfig()


def configure_logging(level: Optional[str] = None) -> None:
    """
    Send OpenDW log messages to stdout.

    Args:
        level: Logging level name (default: config.log_level)
    """
    logging.basicConfig(
        level=getattr(logging, (level or config.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
