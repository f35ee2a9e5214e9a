# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the backup path codec.
"""

import pytest

from btbackup.exceptions import InvalidInputError, InvalidPathError
from btbackup.paths import (
    BackupRoot,
    backup_object_prefix,
    export_file_prefix,
    parse_backup_object_name,
    parse_backup_root,
    render_backup_object_path,
    render_destination_path,
    render_source_pattern,
)


# ============================================================================
# parse_backup_root
# ============================================================================

@pytest.mark.parametrize(
    "path,bucket,prefix",
    [
        ("gs://bucket/backups", "bucket", "backups/"),
        ("gs://bucket/backups/", "bucket", "backups/"),
        ("bucket/a/b", "bucket", "a/b/"),
        ("gs://bucket", "bucket", ""),
        ("gs://bucket/", "bucket", ""),
        ("bucket", "bucket", ""),
    ],
)
def test_parse_backup_root(path: str, bucket: str, prefix: str):
    root = parse_backup_root(path)

    assert root == BackupRoot(bucket=bucket, prefix=prefix)


@pytest.mark.parametrize("path", ["", "gs://", "/backups"])
def test_parse_backup_root_rejects_missing_bucket(path: str):
    with pytest.raises(InvalidPathError) as exc_info:
        parse_backup_root(path)

    assert isinstance(exc_info.value, InvalidInputError)


@pytest.mark.parametrize(
    "path",
    [
        "gs://bucket/backups",
        "gs://bucket/nested/deeper/",
        "bucket",
        "gs://bucket/",
        "bucket/with space/x",
        "gs://bucket//double",
    ],
)
def test_parse_backup_root_is_idempotent(path: str):
    """Parsing the rendered form of a parsed root yields the same root."""
    root = parse_backup_root(path)

    assert parse_backup_root(root.render()) == root
    assert parse_backup_root(str(root)) == root


# ============================================================================
# Rendering
# ============================================================================

def test_render_backup_object_path():
    root = BackupRoot(bucket="bucket", prefix="backups/")

    assert render_backup_object_path(root, "events", 1700000000) == (
        "bucket/backups/events/1700000000/"
    )
    assert backup_object_prefix(root, "events", 1700000000) == "backups/events/1700000000/"


def test_render_paths_without_prefix():
    root = BackupRoot(bucket="bucket")

    assert render_backup_object_path(root, "t", 5) == "bucket/t/5/"
    assert render_destination_path(root, "t", 5) == "gs://bucket/t/5/"


def test_render_source_pattern_matches_export_files():
    root = parse_backup_root("gs://bucket/backups")

    assert render_source_pattern(root, "events", 42) == "gs://bucket/backups/events/42/events:*"
    assert export_file_prefix("events") == "events:"


def test_rendered_export_file_parses_back():
    """A shard written by an export job is recognized by the index parser."""
    root = parse_backup_root("gs://bucket/backups")
    directory = render_backup_object_path(root, "events_1", 1700000123)
    object_name = directory[len(root.bucket) + 1:] + export_file_prefix("events_1") + "part-00000"

    assert parse_backup_object_name(root.prefix, object_name) == ("events_1", 1700000123)


# ============================================================================
# parse_backup_object_name
# ============================================================================

@pytest.mark.parametrize(
    "prefix,name,expected",
    [
        ("", "a/100/x", ("a", 100)),
        ("backups/", "backups/a/100/a:shard-1", ("a", 100)),
        ("", "a/100/nested/deeper/file", ("a", 100)),
        ("", "a/0/x", ("a", 0)),
    ],
)
def test_parse_backup_object_name_valid(prefix, name, expected):
    assert parse_backup_object_name(prefix, name) == expected


@pytest.mark.parametrize(
    "name",
    [
        "a/100/",  # directory marker only
        "a/100",  # fewer than three segments
        "a",
        "a/10x/file",  # non-numeric timestamp
        "a/-5/file",
        "a/ 1/file",
        "a//file",  # empty timestamp
        "a/99999999999999999999/file",  # beyond int64
    ],
)
def test_parse_backup_object_name_excluded(name: str):
    assert parse_backup_object_name("", name) is None


def test_parse_backup_object_name_requires_prefix():
    assert parse_backup_object_name("backups/", "other/a/100/x") is None
