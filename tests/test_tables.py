# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for table resolution, including periodic table prefixes.
"""

from datetime import timedelta

import pytest

from btbackup.tables import effective_table_prefix, list_table_ids, table_id_from_name

from conftest import FakeTableAdmin


def test_table_id_from_name():
    assert table_id_from_name("projects/p/instances/i/tables/events_1") == "events_1"
    assert table_id_from_name("events_1") == "events_1"


def test_effective_prefix_without_period():
    assert effective_table_prefix("events", timedelta(0), now=123456) == "events"


def test_effective_prefix_truncates_period_to_seconds():
    # 90.9s is treated as a 90 second period
    assert effective_table_prefix("t_", timedelta(seconds=90.9), now=900) == "t_10"


@pytest.mark.asyncio
async def test_list_table_ids_plain_prefix_keeps_listing_order():
    admin = FakeTableAdmin(["events_2", "users", "events_1", "events_10"], page_size=3)

    table_ids = await list_table_ids(admin, "proj", "inst", "events")

    assert table_ids == ["events_2", "events_1", "events_10"]
    # Both pages were requested against the instance
    assert admin.calls == [
        ("projects/proj/instances/inst", None),
        ("projects/proj/instances/inst", "3"),
    ]


@pytest.mark.asyncio
async def test_list_table_ids_periodic_selects_active_table():
    """With an hourly period only the table of the current hour matches."""
    admin = FakeTableAdmin(["a0", "a1", "a2", "b5"])
    now = 3600 * 1 + 1234  # floor(now / 3600) == 1

    table_ids = await list_table_ids(
        admin, "proj", "inst", "a", timedelta(seconds=3600), now=now
    )

    assert table_ids == ["a1"]


@pytest.mark.asyncio
async def test_list_table_ids_no_match_returns_empty():
    admin = FakeTableAdmin(["users", "orders"])

    assert await list_table_ids(admin, "proj", "inst", "events") == []


@pytest.mark.asyncio
async def test_list_table_ids_empty_instance():
    admin = FakeTableAdmin([])

    assert await list_table_ids(admin, "proj", "inst", "") == []
    assert len(admin.calls) == 1
