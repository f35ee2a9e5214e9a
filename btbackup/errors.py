# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for Bigtable Backup.

These helpers centralize wording for common input errors so that
all modules present consistent, actionable messages.
"""


def explain_empty_backup_path(value: str) -> str:
    """
    Explain that a backup path has no bucket component.
    """

    return (
        f"Invalid backup path: {value!r}. "
        "Expected a GCS path such as 'gs://my-bucket/backups/' or 'my-bucket/backups'."
    )


def explain_invalid_duration(value: str | None) -> str:
    """
    Explain that a duration flag or variable could not be parsed.
    """

    return (
        f"Invalid duration: {value!r}. "
        "Use a number of seconds or a Go-style duration such as '10s', '1h' or '1h30m'."
    )


def explain_invalid_env_number(name: str, value: str | None) -> str:
    """
    Explain that a numeric environment variable is invalid.
    """

    return f"Invalid {name} value: {value!r}. It must be a non-negative number."


def explain_invalid_output_format(value: str) -> str:
    """
    Explain that the list-backups output format is unsupported.
    """

    return f"Unsupported output format: {value!r}. Expected 'text' or 'json'."


def explain_no_tables(instance_id: str, prefix: str) -> str:
    """
    Explain that no table matched the prefix.
    """

    return (
        f"No tables found in instance {instance_id!r} with prefix {prefix!r}. "
        "Check --bigtable-table-id-prefix and --periodic-table-duration."
    )


def explain_no_backups(table_id: str, backup_path: str) -> str:
    """
    Explain that no backup exists for a table under a backup root.
    """

    return (
        f"No backups found for table {table_id!r} under {backup_path!r}. "
        "Run list-backups to see what is available, or pass --backup-timestamp."
    )
