"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Fetcher settings and explicit config loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_optional(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


@dataclass(frozen=True, slots=True)
class FetcherSettings:
    """
    Explicit settings used to build a ``Fetcher``.

    Attributes:
        beta: Early refresh aggressiveness; ``0`` disables early refresh.
        recompute_on_cache_failure: Recompute when the cache read fails
            instead of failing the call.
        seed: Seed for the fetcher-owned random source; ``None`` seeds from
            the operating system.
        timeout_s: Deadline shared by all steps of one fetch.
    """

    beta: float = 1.0
    recompute_on_cache_failure: bool = False
    seed: int | None = None
    timeout_s: float | None = None

    def __post_init__(self) -> None:
        if self.beta < 0:
            raise ValueError("beta must be >= 0")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")

    @staticmethod
    def from_env() -> "FetcherSettings":
        """Load settings from `XFETCH_*` environment variables."""
        seed = _env_optional("XFETCH_SEED")
        timeout = _env_optional("XFETCH_TIMEOUT_S")
        return FetcherSettings(
            beta=float(os.getenv("XFETCH_BETA", "1.0")),
            recompute_on_cache_failure=_env_bool(
                "XFETCH_RECOMPUTE_ON_CACHE_FAILURE", False
            ),
            seed=int(seed) if seed is not None else None,
            timeout_s=float(timeout) if timeout is not None else None,
        )
