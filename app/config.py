"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _clamp_ratio(value: float) -> float:
    return min(1.0, max(0.0, value))


@dataclass(frozen=True)
class UploadSettings:
    """
    Runtime settings for spreadsheet discovery and confirmation.

    match_threshold:
        Minimum edit-distance similarity the fuzzy matcher accepts.
    auto_map_threshold:
        Stores/advisors scoring strictly above this are suggested as mapped.
    auto_confirm:
        Commit a session during discovery when every entity is already mapped.
    generate_store_rollups:
        Derive one store-level record per store from advisor rows after a
        services commit.
    max_file_bytes:
        Uploads larger than this are rejected before parsing.
    """

    match_threshold: float = 0.7
    auto_map_threshold: float = 0.8
    auto_confirm: bool = True
    generate_store_rollups: bool = False
    max_file_bytes: int = 10 * 1024 * 1024


@lru_cache(maxsize=1)
def get_upload_settings() -> UploadSettings:
    """
    Return cached upload settings from environment variables.
    """

    return UploadSettings(
        match_threshold=_clamp_ratio(_get_float_env("UPLOAD_MATCH_THRESHOLD", 0.7)),
        auto_map_threshold=_clamp_ratio(_get_float_env("UPLOAD_AUTO_MAP_THRESHOLD", 0.8)),
        auto_confirm=_get_bool_env("UPLOAD_AUTO_CONFIRM", True),
        generate_store_rollups=_get_bool_env("UPLOAD_GENERATE_STORE_ROLLUPS", False),
        max_file_bytes=max(1, _get_int_env("UPLOAD_MAX_FILE_BYTES", 10 * 1024 * 1024)),
    )
