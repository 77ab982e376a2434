"""Load config from PROCESS_METRICS_CONFIG_PATH or return default.

``load_config()`` is memoised with ``functools.lru_cache`` so the file is read
and parsed at most once per process.  Call ``load_config.cache_clear()`` to
force a re-read (useful in tests and when ``PROCESS_METRICS_CONFIG_PATH``
changes at runtime).
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .schema import DEFAULT_CONFIG, MetricsConfig


class _Env(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PROCESS_METRICS_", extra="ignore")
    config_path: Optional[str] = None


_env: Optional[_Env] = None


def _get_env() -> _Env:
    global _env
    if _env is None:
        _env = _Env()
    return _env


@functools.lru_cache(maxsize=1)
def load_config() -> MetricsConfig:
    """Load config from PROCESS_METRICS_CONFIG_PATH if set and valid; else return DEFAULT_CONFIG.

    Result is cached for the lifetime of the process.  Call
    ``load_config.cache_clear()`` to force a reload.
    """
    path = _get_env().config_path
    if not path or not path.strip():
        return DEFAULT_CONFIG
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        return DEFAULT_CONFIG
    data = json.loads(p.read_text(encoding="utf-8"))
    # Also accept a whole engine config file with a "metrics" section.
    if "metrics" in data and isinstance(data["metrics"], dict):
        data = data["metrics"]
    return MetricsConfig.model_validate(data)
