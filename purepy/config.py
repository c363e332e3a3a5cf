"""
Process-wide settings for purepy.

Tunables are plain attributes on a module-level ``settings`` object; the
builders read them at compile time, and ``configure`` updates them.

Usage:
    >>> from purepy import config
    >>> config.configure(allow_impure_without_caching=True)
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Optional


@dataclass
class Settings:
    # Member access on reference-typed state is tolerated when caching is off.
    allow_impure_without_caching: bool = False
    # Worker threads for the default pool; None means os.cpu_count().
    max_workers: Optional[int] = None
    # Upper bound on reduction passes before lowering.
    max_reduction_passes: int = 32
    # Minimum interpreter recursion limit while a compiled function runs.
    recursion_limit: int = 10_000
    enable_logging: bool = False

    def resolved_workers(self) -> int:
        return self.max_workers or max(1, os.cpu_count() or 1)


settings = Settings()


def configure(**kwargs) -> Settings:
    """
    Update ``settings`` in place and return it.

    A change to ``max_workers`` shuts the default worker pool down, so the
    next parallel evaluation creates one of the new size.
    """
    known = {f.name for f in fields(Settings)}
    for key in kwargs:
        if key not in known:
            raise TypeError(f"Unknown setting: {key}")
    workers = settings.max_workers
    for key, value in kwargs.items():
        setattr(settings, key, value)
    if settings.enable_logging:
        logging.basicConfig(level=logging.DEBUG)
    if settings.max_workers != workers:
        _restart_default_pool()
    return settings


def reset_settings() -> Settings:
    """Restore every setting to its default."""
    workers = settings.max_workers
    defaults = Settings()
    for f in fields(Settings):
        setattr(settings, f.name, getattr(defaults, f.name))
    if settings.max_workers != workers:
        _restart_default_pool()
    return settings


def _restart_default_pool():
    # runtime.parallel imports this module for its defaults.
    from .runtime.parallel import shutdown_default_pool
    shutdown_default_pool()
