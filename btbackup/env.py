# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers read a small set of well-known environment variables that
set defaults for job polling and placement. Command-line flags override
whatever is read here.

Optional environment variables:
    - BTBACKUP_DATAFLOW_LOCATION: Dataflow region (default: us-central1)
    - BTBACKUP_POLL_INTERVAL: Duration between job state polls (default: 10s)
    - BTBACKUP_POLL_MAX_INTERVAL: Upper bound when backing off (default: 60s)
    - BTBACKUP_POLL_BACKOFF: Interval multiplier, >= 1 (default: 1)
    - BTBACKUP_POLL_JITTER: Random fraction in [0, 1) (default: 0)
    - BTBACKUP_POLL_TIMEOUT: Overall wait deadline (default: none)
    - BTBACKUP_MAX_UNRECOGNIZED_STATES: Unknown states tolerated (default: unlimited)
"""

from __future__ import annotations

import os
from typing import Mapping

from btbackup.config import DEFAULT_DATAFLOW_LOCATION, PollPolicy, parse_duration
from btbackup.errors import explain_invalid_duration, explain_invalid_env_number
from btbackup.exceptions import ConfigurationError, InvalidInputError


def _parse_seconds(name: str, value: str | None) -> float | None:
    if not value:
        return None
    try:
        return parse_duration(value).total_seconds()
    except InvalidInputError as exc:
        raise ConfigurationError(
            f"{name}: {explain_invalid_duration(value)}"
        ) from exc


def _parse_float(name: str, value: str | None) -> float | None:
    if not value:
        return None
    try:
        number = float(value)
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_env_number(name, value)) from exc
    if number < 0:
        raise ConfigurationError(explain_invalid_env_number(name, value))
    return number


def _parse_int(name: str, value: str | None) -> int | None:
    if not value:
        return None
    try:
        number = int(value)
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_env_number(name, value)) from exc
    if number < 0:
        raise ConfigurationError(explain_invalid_env_number(name, value))
    return number


def dataflow_location_from_env(environ: Mapping[str, str] | None = None) -> str:
    """Dataflow region from BTBACKUP_DATAFLOW_LOCATION, or the default."""
    environ = os.environ if environ is None else environ
    return environ.get("BTBACKUP_DATAFLOW_LOCATION") or DEFAULT_DATAFLOW_LOCATION


def poll_policy_from_env(environ: Mapping[str, str] | None = None) -> PollPolicy:
    """
    Create a PollPolicy from environment variables.

    Unset variables keep the PollPolicy defaults. A max interval below the
    configured interval is raised to match it.

    Raises:
        ConfigurationError: If a variable cannot be parsed
    """
    environ = os.environ if environ is None else environ
    defaults = PollPolicy()

    interval = _parse_seconds("BTBACKUP_POLL_INTERVAL", environ.get("BTBACKUP_POLL_INTERVAL"))
    max_interval = _parse_seconds(
        "BTBACKUP_POLL_MAX_INTERVAL", environ.get("BTBACKUP_POLL_MAX_INTERVAL")
    )
    backoff = _parse_float("BTBACKUP_POLL_BACKOFF", environ.get("BTBACKUP_POLL_BACKOFF"))
    jitter = _parse_float("BTBACKUP_POLL_JITTER", environ.get("BTBACKUP_POLL_JITTER"))
    timeout = _parse_seconds("BTBACKUP_POLL_TIMEOUT", environ.get("BTBACKUP_POLL_TIMEOUT"))
    max_unrecognized = _parse_int(
        "BTBACKUP_MAX_UNRECOGNIZED_STATES", environ.get("BTBACKUP_MAX_UNRECOGNIZED_STATES")
    )

    interval = interval if interval is not None else defaults.interval

    return PollPolicy(
        interval=interval,
        max_interval=max(max_interval or defaults.max_interval, interval),
        backoff=backoff if backoff is not None else defaults.backoff,
        jitter=jitter if jitter is not None else defaults.jitter,
        timeout=timeout if timeout else None,
        max_unrecognized_states=max_unrecognized or None,
    )
