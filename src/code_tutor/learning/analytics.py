"""Learning analytics: progress recompute, trend buckets and recommendations.

Everything here is derived from stored reveal rows. The pure functions
(``summarize_window``, ``bucket_reveals``, ``rank_recommendations``) take
plain model lists so they are independent of row order and storage; the async
wrappers load the rows for one user.
"""

import calendar
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from statistics import fmean

import structlog
from pydantic import BaseModel

from code_tutor.models.problem import ProblemHistory
from code_tutor.models.progress import (
    CategoryTrend,
    LearningProgress,
    Recommendation,
    Timeframe,
    TrendBucket,
)
from code_tutor.models.reveal import MAX_REVEAL_LEVEL, CodeReveal
from code_tutor.storage.problems import get_problem, get_user_problems
from code_tutor.storage.progress import get_user_learning_progress, upsert_learning_progress
from code_tutor.storage.reveals import get_user_reveals
from code_tutor.storage.tables import Database

logger = structlog.get_logger()

DEFAULT_PROGRESS_WINDOW_DAYS = 30
UNKNOWN_CATEGORY = "Unknown"


class WindowSummary(BaseModel):
    problems_attempted: int
    problems_solved: int
    avg_reveal_level: float
    improvement_rate: float


def shift_months(moment: datetime, months: int) -> datetime:
    """Move by whole calendar months, clamping the day to the target month."""
    month_index = moment.year * 12 + moment.month - 1 + months
    year, month0 = divmod(month_index, 12)
    day = min(moment.day, calendar.monthrange(year, month0 + 1)[1])
    return moment.replace(year=year, month=month0 + 1, day=day)


def window_start(timeframe: Timeframe, now: datetime) -> datetime:
    if timeframe == Timeframe.WEEK:
        return now - timedelta(days=7)
    if timeframe == Timeframe.MONTH:
        return shift_months(now, -1)
    return shift_months(now, -12)


def period_key(moment: datetime, timeframe: Timeframe) -> str:
    """Bucket label: ISO week for weekly trends, calendar month otherwise."""
    if timeframe == Timeframe.WEEK:
        iso = moment.isocalendar()
        return f"{iso.year}-W{iso.week:02d}"
    return f"{moment.year}-{moment.month:02d}"


def summarize_window(
    reveals: Iterable[CodeReveal], start: datetime, end: datetime
) -> WindowSummary:
    """Roll one category's windowed reveals up into progress figures.

    Each problem counts once: its sections' effective levels are averaged
    first, then problems are averaged. With no reveals the average is the
    maximum level (no evidence the user needs less than full help).
    """
    reveals = list(reveals)
    by_problem: dict[str, list[int]] = defaultdict(list)
    solved: set[str] = set()
    for reveal in reveals:
        by_problem[reveal.problem_id].append(reveal.effective_level)
        if reveal.satisfied_at_level is not None:
            solved.add(reveal.problem_id)

    if by_problem:
        avg_level = fmean(fmean(levels) for levels in by_problem.values())
    else:
        avg_level = float(MAX_REVEAL_LEVEL)

    # Positive when the later half of the window needed less help
    midpoint = start + (end - start) / 2
    older = [r.effective_level for r in reveals if r.created_at < midpoint]
    recent = [r.effective_level for r in reveals if r.created_at >= midpoint]
    improvement = round(fmean(older) - fmean(recent), 2) if older and recent else 0.0

    return WindowSummary(
        problems_attempted=len(by_problem),
        problems_solved=len(solved),
        avg_reveal_level=avg_level,
        improvement_rate=improvement,
    )


async def update_progress_from_reveal(
    db: Database,
    user_id: str,
    problem_id: str,
    category: str | None = None,
    reveal_level: int | None = None,
    satisfied_at_level: int | None = None,
    window_days: int = DEFAULT_PROGRESS_WINDOW_DAYS,
    now: datetime | None = None,
) -> LearningProgress | None:
    """Recompute a category's progress from the trailing window and upsert it.

    The row is rebuilt from scratch on every call, so replaying the same
    reveals yields the same figures. ``category`` is looked up from the
    problem when not given; unknown problems are skipped.
    """
    now = now or datetime.now()
    if category is None:
        problem = await get_problem(db, problem_id)
        if problem is None:
            logger.warning("progress_update_unknown_problem", problem_id=problem_id)
            return None
        category = problem.problem_category

    problem_ids = {p.id for p in await get_user_problems(db, user_id, category=category)}
    start = now - timedelta(days=window_days)
    reveals = await get_user_reveals(db, user_id, since=start, problem_ids=problem_ids)
    summary = summarize_window(reveals, start, now)

    progress = await upsert_learning_progress(
        db,
        user_id,
        category,
        problems_attempted=summary.problems_attempted,
        problems_solved=summary.problems_solved,
        avg_reveal_level=summary.avg_reveal_level,
        improvement_rate=summary.improvement_rate,
        now=now,
    )
    logger.info(
        "learning_progress_updated",
        user_id=user_id,
        category=category,
        trigger_level=reveal_level,
        trigger_satisfied=satisfied_at_level,
        avg_reveal_level=round(summary.avg_reveal_level, 2),
        problems_attempted=summary.problems_attempted,
    )
    return progress


class _Segment:
    def __init__(self) -> None:
        self.problems: set[str] = set()
        self.levels: list[int] = []

    def add(self, reveal: CodeReveal) -> None:
        self.problems.add(reveal.problem_id)
        self.levels.append(reveal.effective_level)

    @property
    def avg_level(self) -> float:
        return fmean(self.levels)


def bucket_reveals(
    reveals: Iterable[CodeReveal],
    problems: Mapping[str, ProblemHistory],
    timeframe: Timeframe,
) -> list[TrendBucket]:
    """Group reveals into sparse, chronologically ordered period buckets."""
    totals: dict[str, _Segment] = defaultdict(_Segment)
    by_category: dict[str, dict[str, _Segment]] = defaultdict(lambda: defaultdict(_Segment))

    for reveal in reveals:
        key = period_key(reveal.created_at, timeframe)
        problem = problems.get(reveal.problem_id)
        category = problem.problem_category if problem else UNKNOWN_CATEGORY
        totals[key].add(reveal)
        by_category[key][category].add(reveal)

    buckets = []
    for key in sorted(totals):
        segment = totals[key]
        categories = [
            CategoryTrend(
                category=name,
                problems_count=len(cat.problems),
                avg_reveal_level=cat.avg_level,
            )
            for name, cat in sorted(by_category[key].items())
        ]
        buckets.append(
            TrendBucket(
                period=key,
                problems_count=len(segment.problems),
                avg_reveal_level=segment.avg_level,
                categories=categories,
            )
        )
    return buckets


async def compute_trend(
    db: Database,
    user_id: str,
    timeframe: Timeframe = Timeframe.MONTH,
    now: datetime | None = None,
) -> list[TrendBucket]:
    """Reveal trend for the trailing week, month or year."""
    now = now or datetime.now()
    reveals = await get_user_reveals(db, user_id, since=window_start(timeframe, now))
    problems = {p.id: p for p in await get_user_problems(db, user_id)}
    return bucket_reveals(reveals, problems, timeframe)


def rank_recommendations(progress_rows: Iterable[LearningProgress]) -> list[Recommendation]:
    """Categories that need the most help first; untouched categories are dropped."""
    attempted = [p for p in progress_rows if p.problems_attempted > 0]
    attempted.sort(key=lambda p: (-p.avg_reveal_level, p.category))
    return [
        Recommendation(
            category=p.category,
            avg_reveal_level=p.avg_reveal_level,
            problems_attempted=p.problems_attempted,
            problems_solved=p.problems_solved,
            focus_reason=Recommendation.reason_for(p.avg_reveal_level),
        )
        for p in attempted
    ]


async def compute_recommendations(db: Database, user_id: str) -> list[Recommendation]:
    return rank_recommendations(await get_user_learning_progress(db, user_id))
