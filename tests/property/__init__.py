"""
Hypothesis settings for the vault property suites.

Every example builds a fresh factory, so deadlines are off everywhere and
the slow-data health check is silenced. Pick a profile with
HYPOTHESIS_PROFILE=dev|ci|fast; without it, CI runs get "ci" and local runs
get "dev".
"""
from __future__ import annotations

import os

from hypothesis import HealthCheck, Verbosity, settings

_QUIET = [HealthCheck.too_slow]

settings.register_profile("dev", max_examples=100, deadline=None, suppress_health_check=_QUIET)
settings.register_profile(
    "ci",
    max_examples=200,
    deadline=None,
    suppress_health_check=_QUIET,
    verbosity=Verbosity.verbose,
    derandomize=True,
)
settings.register_profile("fast", max_examples=25, deadline=None, suppress_health_check=_QUIET)

_on_ci = (os.getenv("CI") or "").lower() not in ("", "0", "false", "no", "off")
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE") or ("ci" if _on_ci else "dev"))
