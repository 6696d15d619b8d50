"""
User configuration for brmskit.

Settings are read from ``~/.brmskit/config.json`` and can be overridden per
process with environment variables:

* ``BRMSKIT_BACKEND`` - Stan backend passed to ``brms::brm`` ("cmdstanr" or "rstan")
* ``BRMSKIT_CORES`` - default number of cores for sampling
* ``BRMSKIT_LOG_LEVEL`` - logger level name or number ("INFO", "DEBUG", 10, ...)
* ``BRMSKIT_CRAN_MIRROR`` - CRAN mirror used when installing R packages
* ``BRMSKIT_CONFIG`` - alternative path of the JSON config file
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path

__all__ = ["Settings", "get_settings", "save_settings", "reset_settings", "config_path"]

_VALID_BACKENDS = ("cmdstanr", "rstan")


@dataclass(frozen=True)
class Settings:
    backend: str = "cmdstanr"
    cores: int = 2
    log_level: int = logging.INFO
    cran_mirror: str = "https://cloud.r-project.org"

    def __post_init__(self):
        if self.backend not in _VALID_BACKENDS:
            raise ValueError(
                f"backend must be one of {_VALID_BACKENDS!r}, got {self.backend!r}"
            )
        object.__setattr__(self, "cores", int(self.cores))
        if self.cores < 1:
            raise ValueError(f"cores must be >= 1, got {self.cores!r}")


_settings: Settings | None = None


def config_path() -> Path:
    """Location of the JSON config file."""
    override = os.environ.get("BRMSKIT_CONFIG")
    if override:
        return Path(override)
    return Path.home() / ".brmskit" / "config.json"


def _parse_level(value) -> int:
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def _read_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    known = {f.name for f in fields(Settings)}
    return {k: v for k, v in raw.items() if k in known}


def _read_env() -> dict:
    out: dict = {}
    if "BRMSKIT_BACKEND" in os.environ:
        out["backend"] = os.environ["BRMSKIT_BACKEND"]
    if "BRMSKIT_CORES" in os.environ:
        out["cores"] = int(os.environ["BRMSKIT_CORES"])
    if "BRMSKIT_LOG_LEVEL" in os.environ:
        out["log_level"] = os.environ["BRMSKIT_LOG_LEVEL"]
    if "BRMSKIT_CRAN_MIRROR" in os.environ:
        out["cran_mirror"] = os.environ["BRMSKIT_CRAN_MIRROR"]
    return out


def get_settings() -> Settings:
    """
    Return the active settings (file values overridden by environment).

    The result is cached; call `reset_settings()` after changing the
    environment or the config file.
    """
    global _settings
    if _settings is None:
        values = {**_read_file(config_path()), **_read_env()}
        if "log_level" in values:
            values["log_level"] = _parse_level(values["log_level"])
        _settings = Settings(**values)
    return _settings


def save_settings(**changes) -> Settings:
    """
    Persist changed settings to the config file and return the new settings.

    Examples
    --------
    >>> from brmskit.config import save_settings
    >>> save_settings(backend="rstan", cores=4)
    """
    global _settings
    if "log_level" in changes:
        changes["log_level"] = _parse_level(changes["log_level"])
    current = Settings(**_read_file(config_path()))
    updated = replace(current, **changes)

    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(asdict(updated), f, indent=2)

    _settings = None
    return get_settings()


def reset_settings() -> None:
    """Drop cached settings so they are re-read on next access."""
    global _settings
    _settings = None
