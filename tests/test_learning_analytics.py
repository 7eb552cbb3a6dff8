"""Tests for progress recompute, trends and recommendations."""

import random
from datetime import datetime, timedelta

import pytest

from code_tutor.learning import analytics
from code_tutor.models.problem import ProblemHistory
from code_tutor.models.progress import (
    GOOD_PROGRESS_REASON,
    NEEDS_HELP_REASON,
    LearningProgress,
    Timeframe,
)
from code_tutor.models.reveal import CodeReveal, SectionType
from code_tutor.storage.problems import save_problem_to_history
from code_tutor.storage.progress import get_user_learning_progress
from code_tutor.storage.reveals import track_code_reveal
from code_tutor.storage.tables import Database

NOW = datetime(2026, 3, 15, 12, 0, 0)


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path)


def _reveal(problem_id, level, satisfied=None, at=NOW, section_index=0):
    return CodeReveal(
        user_id="alice",
        problem_id=problem_id,
        section_type=SectionType.CODE,
        section_index=section_index,
        reveal_level=level,
        satisfied_at_level=satisfied,
        created_at=at,
        updated_at=at,
    )


class TestSummarizeWindow:
    def test_no_reveals_defaults_to_full_help(self):
        summary = analytics.summarize_window([], NOW - timedelta(days=30), NOW)
        assert summary.problems_attempted == 0
        assert summary.avg_reveal_level == 5.0
        assert summary.improvement_rate == 0.0

    def test_satisfaction_level_preferred(self):
        summary = analytics.summarize_window(
            [_reveal("a", 5, satisfied=2)], NOW - timedelta(days=30), NOW
        )
        assert summary.avg_reveal_level == 2.0
        assert summary.problems_solved == 1

    def test_sections_averaged_within_problem_first(self):
        reveals = [
            _reveal("a", 1, section_index=0),
            _reveal("a", 3, section_index=1),
            _reveal("b", 5),
        ]
        summary = analytics.summarize_window(reveals, NOW - timedelta(days=30), NOW)
        assert summary.problems_attempted == 2
        assert summary.avg_reveal_level == pytest.approx(3.5)

    def test_improvement_positive_when_recent_needs_less(self):
        start = NOW - timedelta(days=30)
        reveals = [
            _reveal("a", 5, at=start + timedelta(days=2)),
            _reveal("b", 1, at=NOW - timedelta(days=2)),
        ]
        summary = analytics.summarize_window(reveals, start, NOW)
        assert summary.improvement_rate == 4.0


class TestUpdateProgress:
    async def _graph_problems(self, db):
        problem_ids = []
        for title, level in [("Islands", 2), ("Course Schedule", 3), ("Clone Graph", 5)]:
            problem = await save_problem_to_history(db, "alice", title, "Graph", "Medium")
            await track_code_reveal(
                db, "alice", problem.id, SectionType.CODE, 0, level, None,
                now=NOW - timedelta(days=1),
            )
            problem_ids.append(problem.id)
        return problem_ids

    async def test_graph_needs_help(self, db):
        problem_ids = await self._graph_problems(db)
        progress = await analytics.update_progress_from_reveal(
            db, "alice", problem_ids[0], now=NOW
        )
        assert progress.category == "Graph"
        assert progress.problems_attempted == 3
        assert progress.avg_reveal_level == pytest.approx(10 / 3)

        recommendations = await analytics.compute_recommendations(db, "alice")
        assert recommendations[0].category == "Graph"
        assert recommendations[0].focus_reason == NEEDS_HELP_REASON

    async def test_single_graph_problem_three_sections(self, db):
        problem = await save_problem_to_history(db, "alice", "Clone Graph", "Graph", "Medium")
        for section_index, level, satisfied in [(0, 2, None), (1, 3, None), (2, 5, 5)]:
            await track_code_reveal(
                db, "alice", problem.id, SectionType.CODE, section_index, level, satisfied,
                now=NOW - timedelta(hours=3 - section_index),
            )

        progress = await analytics.update_progress_from_reveal(
            db, "alice", problem.id, reveal_level=5, satisfied_at_level=5, now=NOW
        )
        assert progress.problems_attempted == 1
        assert progress.problems_solved == 1
        assert round(progress.avg_reveal_level, 2) == 3.33

        recommendations = await analytics.compute_recommendations(db, "alice")
        assert recommendations[0].category == "Graph"
        assert recommendations[0].focus_reason == NEEDS_HELP_REASON

    async def test_replay_is_idempotent(self, db):
        problem_ids = await self._graph_problems(db)
        first = await analytics.update_progress_from_reveal(db, "alice", problem_ids[1], now=NOW)
        second = await analytics.update_progress_from_reveal(db, "alice", problem_ids[1], now=NOW)
        assert first.problems_attempted == second.problems_attempted
        assert first.avg_reveal_level == second.avg_reveal_level
        assert len(await get_user_learning_progress(db, "alice")) == 1

    async def test_reveals_outside_window_ignored(self, db):
        problem = await save_problem_to_history(db, "alice", "Old", "Tree", "Easy")
        await track_code_reveal(
            db, "alice", problem.id, SectionType.CODE, 0, 1, None, now=NOW - timedelta(days=45)
        )
        progress = await analytics.update_progress_from_reveal(db, "alice", problem.id, now=NOW)
        assert progress.problems_attempted == 0
        assert progress.avg_reveal_level == 5.0

    async def test_unknown_problem_skipped(self, db):
        assert await analytics.update_progress_from_reveal(db, "alice", "ghost", now=NOW) is None
        assert await get_user_learning_progress(db, "alice") == []


class TestTrend:
    def _problems(self):
        return {
            "g": ProblemHistory(id="g", user_id="alice", problem_title="G", problem_category="Graph"),
            "t": ProblemHistory(id="t", user_id="alice", problem_title="T", problem_category="Tree"),
        }

    def test_buckets_sparse_and_chronological(self):
        reveals = [
            _reveal("g", 4, at=datetime(2026, 1, 10)),
            _reveal("t", 2, at=datetime(2026, 3, 5)),
            _reveal("g", 2, at=datetime(2026, 3, 6)),
        ]
        buckets = analytics.bucket_reveals(reveals, self._problems(), Timeframe.MONTH)
        assert [b.period for b in buckets] == ["2026-01", "2026-03"]
        march = buckets[1]
        assert march.problems_count == 2
        assert march.avg_reveal_level == 2.0
        assert [c.category for c in march.categories] == ["Graph", "Tree"]

    def test_order_independent(self):
        reveals = [
            _reveal("g", 4, at=datetime(2026, 1, 10)),
            _reveal("t", 2, at=datetime(2026, 2, 5)),
            _reveal("g", 1, at=datetime(2026, 2, 6)),
            _reveal("t", 5, at=datetime(2026, 3, 1)),
        ]
        shuffled = list(reveals)
        random.Random(7).shuffle(shuffled)
        expected = analytics.bucket_reveals(reveals, self._problems(), Timeframe.MONTH)
        assert analytics.bucket_reveals(shuffled, self._problems(), Timeframe.MONTH) == expected

    def test_week_keys(self):
        buckets = analytics.bucket_reveals(
            [_reveal("g", 3, at=datetime(2026, 3, 12))], self._problems(), Timeframe.WEEK
        )
        assert buckets[0].period == "2026-W11"

    def test_unknown_problem_category(self):
        buckets = analytics.bucket_reveals([_reveal("zzz", 3)], {}, Timeframe.MONTH)
        assert buckets[0].categories[0].category == "Unknown"

    def test_window_start(self):
        assert analytics.window_start(Timeframe.WEEK, NOW) == NOW - timedelta(days=7)
        assert analytics.window_start(Timeframe.MONTH, NOW) == datetime(2026, 2, 15, 12)
        assert analytics.window_start(Timeframe.YEAR, NOW) == datetime(2025, 3, 15, 12)

    def test_shift_months_clamps_day(self):
        assert analytics.shift_months(datetime(2026, 3, 31), -1) == datetime(2026, 2, 28)

    async def test_compute_trend_uses_window(self, db):
        problem = await save_problem_to_history(db, "alice", "Islands", "Graph", "Medium")
        await track_code_reveal(
            db, "alice", problem.id, SectionType.CODE, 0, 3, None, now=NOW - timedelta(days=3)
        )
        await track_code_reveal(
            db, "alice", problem.id, SectionType.CODE, 1, 1, None, now=NOW - timedelta(days=20)
        )
        weekly = await analytics.compute_trend(db, "alice", Timeframe.WEEK, now=NOW)
        assert len(weekly) == 1
        assert weekly[0].categories[0].category == "Graph"
        monthly = await analytics.compute_trend(db, "alice", Timeframe.MONTH, now=NOW)
        assert sum(b.problems_count for b in monthly) >= 1


class TestRecommendations:
    def _row(self, category, avg, attempted=1):
        return LearningProgress(
            user_id="alice",
            category=category,
            problems_attempted=attempted,
            avg_reveal_level=avg,
        )

    def test_sorted_by_need(self):
        ranked = analytics.rank_recommendations(
            [self._row("Array", 1.5), self._row("Graph", 4.2), self._row("Tree", 3.0)]
        )
        assert [r.category for r in ranked] == ["Graph", "Tree", "Array"]
        assert ranked[0].focus_reason == NEEDS_HELP_REASON
        assert ranked[1].focus_reason == GOOD_PROGRESS_REASON

    def test_unattempted_excluded(self):
        ranked = analytics.rank_recommendations(
            [self._row("Array", 5.0, attempted=0), self._row("Heap", 2.0)]
        )
        assert [r.category for r in ranked] == ["Heap"]

    def test_empty(self):
        assert analytics.rank_recommendations([]) == []
