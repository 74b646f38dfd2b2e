"""GitHub REST ingestor for repository statistics used by the Cyber Index."""
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

import requests

from common.models import (
    Frequency,
    PullRequestStats,
    RepoAuthenticatedData,
    RepoPublicData,
)
from config.settings import GITHUB_PAT
from ingest.base import BaseIngestor

ONE_DAY = timedelta(days=1)


def parse_github_url(url: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Extract (owner, repo) from a github.com URL; (None, None) otherwise."""
    if not url:
        return None, None
    try:
        parsed = urlparse(url)
    except ValueError:
        return None, None
    parts = [p for p in parsed.path.split("/") if p]
    if parsed.hostname == "github.com" and len(parts) >= 2:
        repo = parts[1][:-4] if parts[1].endswith(".git") else parts[1]
        if repo:
            return parts[0], repo
    return None, None


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _frequency(dates: Iterable[datetime], now: Optional[datetime] = None) -> Frequency:
    dates = list(dates)
    if not dates:
        return Frequency()
    now = now or datetime.now(timezone.utc)
    span = max(now - min(dates), ONE_DAY)
    days = span / ONE_DAY
    n = len(dates)
    return Frequency(
        daily=round(n / days, 2),
        weekly=round(n / (days / 7), 2),
        monthly=round(n / (days / 30), 2),
    )


def calculate_commit_frequency(commit_dates: Iterable[datetime],
                               now: Optional[datetime] = None) -> Frequency:
    """Commits per day/week/month since the oldest commit in the sample."""
    return _frequency(commit_dates, now)


def calculate_deployment_frequency(deploy_dates: Iterable[datetime],
                                   now: Optional[datetime] = None) -> Frequency:
    return _frequency(deploy_dates, now)


def calculate_pull_request_stats(pull_requests: list[dict]) -> PullRequestStats:
    if not pull_requests:
        return PullRequestStats()
    merged = [pr for pr in pull_requests if pr.get("merged_at")]
    total_reviews = sum(pr.get("review_comments") or 0 for pr in pull_requests)
    hours = [
        (_parse_ts(pr["merged_at"]) - _parse_ts(pr["created_at"])).total_seconds() / 3600
        for pr in merged
    ]
    avg = sum(hours) / len(hours) if hours else 0.0
    return PullRequestStats(
        average_time_to_merge=round(avg, 2),
        merge_rate=round(len(merged) / len(pull_requests) * 100, 2),
        reviews_per_pr=round(total_reviews / len(pull_requests), 2),
    )


class GitHubIngestor(BaseIngestor):
    base_url = "https://api.github.com"

    def __init__(self, token: str = GITHUB_PAT, **kwargs):
        super().__init__(**kwargs)
        self.token = token

    @property
    def authenticated(self) -> bool:
        return bool(self.token)

    def default_headers(self) -> dict[str, str]:
        headers = {"accept": "application/vnd.github+json"}
        if self.token:
            headers["authorization"] = f"Bearer {self.token}"
        return headers

    def fetch_public_data(self, owner: str, repo: str) -> RepoPublicData:
        """Fetch repository, issue, PR, contributor, release and commit data.

        Raises ``requests.RequestException`` when GitHub is unreachable or
        the repository does not exist.
        """
        self.logger.info(f"Fetching public data for {owner}/{repo}...")
        prefix = f"/repos/{owner}/{repo}"
        repo_data = self.get_json(prefix)
        issues = self.get_json(f"{prefix}/issues", params={"state": "all"})
        pulls = self.get_json(f"{prefix}/pulls", params={"state": "all"})
        contributors = self.get_json(f"{prefix}/contributors") or []
        releases = self.get_json(f"{prefix}/releases") or []
        commits = self.get_json(f"{prefix}/commits") or []

        commit_dates = [_parse_ts(c["commit"]["author"]["date"]) for c in commits]
        return RepoPublicData(
            stars_count=repo_data.get("stargazers_count"),
            forks_count=repo_data.get("forks_count"),
            open_issues_count=repo_data.get("open_issues_count"),
            closed_issues_count=sum(1 for i in issues if i.get("state") == "closed"),
            open_pull_requests_count=sum(1 for p in pulls if p.get("state") == "open"),
            closed_pull_requests_count=sum(1 for p in pulls if p.get("state") == "closed"),
            contributors_count=len(contributors),
            releases_count=len(releases),
            license=repo_data.get("license"),
            description=repo_data.get("description"),
            topics=repo_data.get("topics"),
            default_branch=repo_data.get("default_branch"),
            primary_language=repo_data.get("language"),
            created_at=repo_data.get("created_at"),
            updated_at=repo_data.get("updated_at"),
            is_archived=repo_data.get("archived"),
            has_wiki=repo_data.get("has_wiki"),
            has_issues=repo_data.get("has_issues"),
            commit_frequency=calculate_commit_frequency(commit_dates),
        )

    def _optional(self, path: str, default: Any, params: Optional[dict] = None) -> Any:
        try:
            return self.get_json(path, params=params)
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"Optional GitHub call {path} failed: {e}")
            return default

    def fetch_authenticated_data(self, owner: str, repo: str) -> RepoAuthenticatedData:
        """Traffic and statistics endpoints; each one may fail independently."""
        prefix = f"/repos/{owner}/{repo}"
        views = self._optional(f"{prefix}/traffic/views", {"views": []})
        clones = self._optional(f"{prefix}/traffic/clones", {"clones": []})
        code_frequency = self._optional(f"{prefix}/stats/code_frequency", [])
        commit_activity = self._optional(f"{prefix}/stats/commit_activity", [])
        deployments = self._optional(f"{prefix}/deployments", [])
        pulls = self._optional(f"{prefix}/pulls", [], params={"state": "all"})
        if not isinstance(deployments, list):
            deployments = []
        if not isinstance(pulls, list):
            pulls = []

        return RepoAuthenticatedData(
            traffic={"views": views.get("views", []), "clones": clones.get("clones", [])},
            # stats endpoints answer 202 with an empty body while GitHub computes them
            code_frequency=code_frequency if isinstance(code_frequency, list) else [],
            commit_activity=commit_activity if isinstance(commit_activity, list) else [],
            deployment_frequency=calculate_deployment_frequency(
                _parse_ts(d["created_at"]) for d in deployments
            ),
            pull_request_review_stats=calculate_pull_request_stats(pulls),
        )

    def fetch_all(self, owner: str, repo: str) -> tuple[RepoPublicData, Optional[RepoAuthenticatedData]]:
        if not self.authenticated:
            return self.fetch_public_data(owner, repo), None
        try:
            public = self.fetch_public_data(owner, repo)
            return public, self.fetch_authenticated_data(owner, repo)
        except requests.RequestException as e:
            self.logger.warning(f"Authenticated fetch for {owner}/{repo} failed: {e}. Retrying anonymously.")
            anonymous = GitHubIngestor(token="", session=self.session, timeout=self.timeout)
            return anonymous.fetch_public_data(owner, repo), None
