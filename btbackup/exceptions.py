# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bigtable Backup Exceptions - Custom exceptions for the btbackup package.
"""


class BTBackupError(Exception):
    """Base exception for all btbackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(BTBackupError):
    """Raised when configuration is invalid."""

    pass


class InvalidInputError(BTBackupError):
    """Raised when a path, duration or flag value is malformed."""

    pass


class InvalidPathError(InvalidInputError):
    """Raised when a backup root has no bucket name."""

    pass


class NoTablesFoundError(BTBackupError):
    """Raised when no table matches the requested prefix."""

    pass


class NoBackupsFoundError(BTBackupError):
    """Raised when no backup exists for the requested table."""

    pass


class TableListingError(BTBackupError):
    """Raised when the table-metadata service call fails."""

    pass


class StorageError(BTBackupError):
    """Raised when object listing or deletion fails."""

    pass


class PartialDeleteError(StorageError):
    """Raised when a delete fails after some objects were already removed."""

    def __init__(self, message: str, deleted_count: int, details: dict | None = None):
        self.deleted_count = deleted_count
        super().__init__(message, details={**(details or {}), "deleted_count": deleted_count})


class SubmissionError(BTBackupError):
    """Raised when the execution service rejects a job."""

    pass


class JobFailedError(BTBackupError):
    """Raised when a job reaches a terminal failure state."""

    def __init__(self, message: str, state: str, details: dict | None = None):
        self.state = state
        super().__init__(message, details={**(details or {}), "state": state})


class UnrecognizedStateError(BTBackupError):
    """Raised when a job keeps reporting a state outside the known sets."""

    def __init__(self, message: str, state: str, details: dict | None = None):
        self.state = state
        super().__init__(message, details={**(details or {}), "state": state})


class JobTimeoutError(BTBackupError):
    """Raised when a job does not finish before the poll deadline."""

    pass


class JobStatusError(BTBackupError):
    """Raised when the state of a submitted job cannot be fetched."""

    pass
