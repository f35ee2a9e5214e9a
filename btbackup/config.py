# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bigtable Backup Configuration - Immutable per-command configuration.

All configuration is frozen (immutable) after creation. Normalized values
(backup roots, effective prefixes) are derived by pure functions instead
of rewriting the fields in place.
"""

from dataclasses import dataclass, field, replace
from datetime import timedelta
from enum import Enum
from typing import List
import re

from btbackup.errors import explain_invalid_duration
from btbackup.exceptions import ConfigurationError, InvalidInputError, InvalidPathError
from btbackup.paths import BackupRoot, parse_backup_root

DEFAULT_DATAFLOW_LOCATION = "us-central1"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0


class OutputFormat(str, Enum):
    """Output shape of list-backups."""

    TEXT = "text"
    JSON = "json"


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_PLAIN_SECONDS = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration string.

    Accepts plain seconds ("30", "2.5") and unit sequences such as
    "10s", "1h", "1h30m" or "250ms".

    Args:
        value: Duration string

    Returns:
        The parsed duration

    Raises:
        InvalidInputError: If the string is not a valid non-negative duration
    """
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(explain_invalid_duration(value))

    if _PLAIN_SECONDS.fullmatch(text):
        seconds = float(text)
    else:
        seconds = 0.0
        position = 0
        for match in _DURATION_PART.finditer(text):
            if match.start() != position:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            position = match.end()
        if position != len(text):
            raise InvalidInputError(explain_invalid_duration(value))

    return timedelta(seconds=seconds)


class _Config:
    """Shared helpers for the frozen config dataclasses."""

    def with_updates(self, **kwargs):
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance (and
        re-runs validation).
        """
        return replace(self, **kwargs)


def _raise_if_errors(errors: List[str]) -> None:
    if errors:
        raise ConfigurationError(
            "Configuration validation failed",
            details={"errors": errors},
        )


def _require(errors: List[str], **values: str) -> None:
    for name, value in values.items():
        if not value:
            errors.append(f"{name} is required")


def _check_root(errors: List[str], name: str, path: str) -> None:
    if not path:
        return
    try:
        parse_backup_root(path)
    except InvalidPathError as e:
        errors.append(f"{name}: {e.message}")


@dataclass(frozen=True)
class PollPolicy(_Config):
    """
    How a submitted job is polled until it reaches a terminal state.

    The defaults match the historical behavior: a fixed 10 second
    interval, no deadline, and unknown states polled indefinitely.
    """

    # Seconds between two state fetches
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS

    # Upper bound for the interval when backoff > 1
    max_interval: float = 60.0

    # Multiplier applied to the interval after each non-terminal poll
    backoff: float = 1.0

    # Random +/- fraction applied to each sleep (0.1 = up to 10%)
    jitter: float = 0.0

    # Overall deadline in seconds (None = wait forever)
    timeout: float | None = None

    # Consecutive unknown states tolerated before failing (None = unlimited)
    max_unrecognized_states: int | None = None

    def __post_init__(self) -> None:
        errors: List[str] = []

        if self.interval <= 0:
            errors.append(f"interval must be > 0, got {self.interval}")
        if self.max_interval < self.interval:
            errors.append(
                f"max_interval must be >= interval, got {self.max_interval} < {self.interval}"
            )
        if self.backoff < 1.0:
            errors.append(f"backoff must be >= 1.0, got {self.backoff}")
        if not 0.0 <= self.jitter < 1.0:
            errors.append(f"jitter must be in [0, 1), got {self.jitter}")
        if self.timeout is not None and self.timeout <= 0:
            errors.append(f"timeout must be > 0, got {self.timeout}")
        if self.max_unrecognized_states is not None and self.max_unrecognized_states < 1:
            errors.append(
                f"max_unrecognized_states must be >= 1, got {self.max_unrecognized_states}"
            )

        _raise_if_errors(errors)

    def next_interval(self, current: float) -> float:
        """Return the un-jittered interval to use after `current`."""
        return min(self.max_interval, current * self.backoff)


@dataclass(frozen=True)
class CreateBackupConfig(_Config):
    """Configuration for the create command."""

    project_id: str
    instance_id: str

    # Literal prefix of the table ids to back up; empty matches every table
    table_id_prefix: str

    destination_path: str
    temp_prefix: str

    # Rotating tables: back up only the currently active period (0 = off)
    periodic_table_duration: timedelta = timedelta(0)

    location: str = DEFAULT_DATAFLOW_LOCATION

    # Block until every export job finishes
    wait_for_completion: bool = True

    # Abort remaining tables after the first failing one
    stop_on_first_error: bool = True

    poll: PollPolicy = field(default_factory=PollPolicy)

    def __post_init__(self) -> None:
        errors: List[str] = []

        _require(
            errors,
            project_id=self.project_id,
            instance_id=self.instance_id,
            destination_path=self.destination_path,
            temp_prefix=self.temp_prefix,
            location=self.location,
        )
        _check_root(errors, "destination_path", self.destination_path)

        if self.periodic_table_duration < timedelta(0):
            errors.append(
                f"periodic_table_duration must be >= 0, got {self.periodic_table_duration}"
            )
        elif timedelta(0) < self.periodic_table_duration < timedelta(seconds=1):
            errors.append("periodic_table_duration must be at least one second")

        _raise_if_errors(errors)

    @property
    def backup_root(self) -> BackupRoot:
        return parse_backup_root(self.destination_path)


@dataclass(frozen=True)
class ListBackupsConfig(_Config):
    """Configuration for the list-backups command."""

    backup_path: str
    output_format: OutputFormat = OutputFormat.TEXT

    def __post_init__(self) -> None:
        errors: List[str] = []

        _require(errors, backup_path=self.backup_path)
        _check_root(errors, "backup_path", self.backup_path)

        _raise_if_errors(errors)

    @property
    def backup_root(self) -> BackupRoot:
        return parse_backup_root(self.backup_path)


@dataclass(frozen=True)
class RestoreBackupConfig(_Config):
    """Configuration for the restore command."""

    backup_path: str
    project_id: str
    instance_id: str
    table_id: str
    temp_prefix: str

    # None (or 0) restores the newest backup of the table
    backup_timestamp: int | None = None

    location: str = DEFAULT_DATAFLOW_LOCATION
    wait_for_completion: bool = False
    poll: PollPolicy = field(default_factory=PollPolicy)

    def __post_init__(self) -> None:
        errors: List[str] = []

        _require(
            errors,
            backup_path=self.backup_path,
            project_id=self.project_id,
            instance_id=self.instance_id,
            table_id=self.table_id,
            temp_prefix=self.temp_prefix,
            location=self.location,
        )
        _check_root(errors, "backup_path", self.backup_path)

        if self.backup_timestamp is not None and self.backup_timestamp < 0:
            errors.append(f"backup_timestamp must be >= 0, got {self.backup_timestamp}")

        _raise_if_errors(errors)

    @property
    def backup_root(self) -> BackupRoot:
        return parse_backup_root(self.backup_path)


@dataclass(frozen=True)
class DeleteBackupConfig(_Config):
    """Configuration for the delete-backup command."""

    table_id: str
    backup_path: str
    backup_timestamp: int

    def __post_init__(self) -> None:
        errors: List[str] = []

        _require(errors, table_id=self.table_id, backup_path=self.backup_path)
        _check_root(errors, "backup_path", self.backup_path)

        if self.backup_timestamp < 0:
            errors.append(f"backup_timestamp must be >= 0, got {self.backup_timestamp}")

        _raise_if_errors(errors)

    @property
    def backup_root(self) -> BackupRoot:
        return parse_backup_root(self.backup_path)
