"""Repository health ("Cyber Index") for a token's linked GitHub project.

Three categories, 100 points in total:

  Activity   (40) — commits/month, pull requests, contributors
  Community  (40) — stars, forks, issues
  Health     (20) — license, recent update, description, topics

Every ratio is clamped to [0, 1] before it is multiplied by its point budget,
so any finite input lands in [0, 100].
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

from common.models import RepoPublicData
from scoring.base import round_half_up

RECENT_ACTIVITY_WINDOW = timedelta(days=30)


def _ratio(value: float, cap: float) -> float:
    return min(max(value / cap, 0), 1)


def _as_public_data(data: Union[RepoPublicData, Mapping]) -> RepoPublicData:
    if isinstance(data, RepoPublicData):
        return data
    return RepoPublicData.model_validate(dict(data))


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _recently_updated(updated_at: Optional[datetime], now: datetime) -> bool:
    if updated_at is None:
        return False
    return _as_utc(now) - _as_utc(updated_at) < RECENT_ACTIVITY_WINDOW


def cyber_index_breakdown(
    public_data: Union[RepoPublicData, Mapping],
    now: Optional[datetime] = None,
) -> dict[str, dict[str, float]]:
    """Per-category points, before summing."""
    d = _as_public_data(public_data)
    now = now or datetime.now(timezone.utc)

    return {
        "activity": {
            "commits":      _ratio(d.commit_frequency.monthly, 300) * 15,
            "prs":          _ratio(d.open_pull_requests_count + d.closed_pull_requests_count, 50) * 15,
            "contributors": _ratio(d.contributors_count, 30) * 10,
        },
        "community": {
            "stars":  _ratio(d.stars_count, 10000) * 20,
            "forks":  _ratio(d.forks_count, 1000) * 10,
            "issues": _ratio(d.open_issues_count + d.closed_issues_count, 100) * 10,
        },
        "health": {
            "has_license":     5 if d.license else 0,
            "recent_activity": 5 if _recently_updated(d.updated_at, now) else 0,
            "has_description": 5 if d.description else 0,
            "has_topics":      5 if len(d.topics) > 0 else 0,
        },
    }


def calculate_cyber_index(
    public_data: Union[RepoPublicData, Mapping],
    authenticated_data: Any = None,
    now: Optional[datetime] = None,
) -> int:
    """Return the 0..100 health score.

    ``authenticated_data`` is accepted for callers that fetched it but does
    not take part in the score.
    """
    breakdown = cyber_index_breakdown(public_data, now=now)
    total = sum(sum(category.values()) for category in breakdown.values())
    return round_half_up(total)
