"""Tests for code reveal persistence: monotonic levels and sticky satisfaction."""

from datetime import datetime, timedelta

import pytest

from code_tutor.models.reveal import SectionType
from code_tutor.storage import reveals as reveal_storage
from code_tutor.storage.tables import Database


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path)


async def _track(db, level, satisfied=None, section_index=0, problem_id="p1", now=None):
    return await reveal_storage.track_code_reveal(
        db, "alice", problem_id, SectionType.CODE, section_index, level, satisfied, now=now
    )


async def test_first_track_inserts(db):
    reveal = await _track(db, 2)
    assert reveal.reveal_level == 2
    assert reveal.satisfied_at_level is None
    assert len(db.code_reveals.select()) == 1


async def test_level_never_decreases(db):
    await _track(db, 3)
    reveal = await _track(db, 1)
    assert reveal.reveal_level == 3
    stored = await reveal_storage.get_code_reveal(db, "alice", "p1", SectionType.CODE, 0)
    assert stored.reveal_level == 3


async def test_level_increases_in_place(db):
    first = await _track(db, 1)
    second = await _track(db, 4)
    assert second.id == first.id
    assert second.reveal_level == 4
    assert second.created_at == first.created_at
    assert len(db.code_reveals.select()) == 1


async def test_satisfaction_is_sticky(db):
    await _track(db, 2, satisfied=2)
    reveal = await _track(db, 5, satisfied=5)
    assert reveal.reveal_level == 5
    assert reveal.satisfied_at_level == 2


async def test_satisfaction_set_when_previously_null(db):
    await _track(db, 3)
    reveal = await _track(db, 3, satisfied=3)
    assert reveal.satisfied_at_level == 3


async def test_satisfaction_not_cleared_by_null(db):
    await _track(db, 2, satisfied=2)
    reveal = await _track(db, 4, satisfied=None)
    assert reveal.satisfied_at_level == 2


async def test_sections_tracked_separately(db):
    await _track(db, 2, section_index=0)
    await _track(db, 5, section_index=1)
    reveals = await reveal_storage.get_user_reveals(db, "alice")
    assert sorted(r.reveal_level for r in reveals) == [2, 5]


async def test_get_user_reveals_filters(db):
    base = datetime(2026, 3, 10, 12, 0, 0)
    await _track(db, 1, problem_id="old", now=base - timedelta(days=40))
    await _track(db, 2, problem_id="p1", now=base - timedelta(days=2))
    await _track(db, 3, problem_id="p2", now=base - timedelta(days=1))

    recent = await reveal_storage.get_user_reveals(db, "alice", since=base - timedelta(days=30))
    assert [r.problem_id for r in recent] == ["p1", "p2"]

    only_p2 = await reveal_storage.get_user_reveals(db, "alice", problem_ids={"p2"})
    assert [r.problem_id for r in only_p2] == ["p2"]


async def test_record_hint_usage(db):
    await reveal_storage.record_hint_usage(db, "alice", "p1", SectionType.PSEUDOCODE, 2)
    usage = await reveal_storage.get_hint_usage(db, "alice")
    assert len(usage) == 1
    assert usage[0].hint_type == SectionType.PSEUDOCODE
    assert usage[0].section_index == 2
