"""GitHub API client for analysing a user's public profile.

Used by the information collection agent to turn a GitHub link into
profile facts: bio, top repositories, language mix and star counts.
"""

import logging
import re
import time
from collections import Counter
from datetime import datetime
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")


def parse_username(username_or_url: str) -> str:
    """Extract a GitHub username from a bare name, '@name' or profile URL.

    Examples:
        "octocat" -> "octocat"
        "@octocat" -> "octocat"
        "https://github.com/octocat/hello-world" -> "octocat"

    Raises:
        ValueError: If no valid username can be extracted
    """
    value = username_or_url.strip().rstrip("/")
    match = re.search(r"github\.com/([^/?#\s]+)", value)
    if match:
        value = match.group(1)
    value = value.lstrip("@")

    if not _USERNAME_RE.match(value):
        raise ValueError(f"Invalid GitHub username: {username_or_url}")
    return value


class GitHubClient:
    """Read-only GitHub REST client.

    A token is optional; without one GitHub allows 60 requests per hour.
    """

    def __init__(self, token: Optional[str] = None, timeout: int = 15):
        self.token = token
        self.timeout = timeout
        self.base_url = "https://api.github.com"
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"

    def _make_github_request(self, url: str, params: Optional[dict] = None) -> requests.Response:
        """Make GitHub API request with automatic rate limit handling.

        If rate limited (429), waits until rate limit resets and retries.
        """
        while True:
            response = requests.get(url, headers=self.headers, params=params, timeout=self.timeout)

            remaining = response.headers.get("X-RateLimit-Remaining")
            limit = response.headers.get("X-RateLimit-Limit")
            if remaining and limit:
                logger.debug(f"Rate limit: {remaining}/{limit} remaining")

            if response.status_code == 429:
                reset_time = int(response.headers.get("X-RateLimit-Reset", 0))
                current_time = int(time.time())
                wait_seconds = max(reset_time - current_time + 5, 60)

                reset_str = datetime.fromtimestamp(reset_time).strftime("%H:%M:%S")
                logger.warning(
                    f"Rate limited! Waiting until {reset_str} "
                    f"({wait_seconds/60:.1f} minutes)..."
                )
                time.sleep(wait_seconds)
                logger.info("Rate limit reset - resuming...")
                continue

            return response

    def get_user(self, username: str) -> dict[str, Any]:
        """Fetch a user's public profile.

        Raises:
            ValueError: If the user does not exist
            requests.HTTPError: On other HTTP errors
        """
        response = self._make_github_request(f"{self.base_url}/users/{username}")
        if response.status_code == 404:
            raise ValueError(f"GitHub user not found: {username}")
        response.raise_for_status()
        return response.json()

    def list_repos(self, username: str, limit: int = 30) -> list[dict[str, Any]]:
        """Most recently updated public repositories, forks excluded."""
        response = self._make_github_request(
            f"{self.base_url}/users/{username}/repos",
            params={"sort": "updated", "per_page": min(limit, 100), "type": "owner"},
        )
        response.raise_for_status()
        return [repo for repo in response.json() if not repo.get("fork")][:limit]

    def analyze_user(self, username_or_url: str, include_repos: bool = True) -> dict[str, Any]:
        """Summarize a GitHub user for profile building.

        Args:
            username_or_url: Username or github.com profile URL
            include_repos: Also fetch repositories, languages and star totals

        Returns:
            Dict with username, profile, repositories, languages.summary
            (list of [language, repo_count], most used first) and stats
        """
        username = parse_username(username_or_url)
        logger.info(f"Analyzing GitHub user {username}")

        user = self.get_user(username)
        profile = {
            "name": user.get("name"),
            "bio": user.get("bio"),
            "company": user.get("company"),
            "location": user.get("location"),
            "blog": user.get("blog"),
            "followers": user.get("followers", 0),
            "following": user.get("following", 0),
            "public_repos": user.get("public_repos", 0),
            "avatar_url": user.get("avatar_url"),
            "html_url": user.get("html_url") or f"https://github.com/{username}",
        }

        repositories: list[dict[str, Any]] = []
        if include_repos:
            for repo in self.list_repos(username):
                repositories.append({
                    "name": repo.get("name"),
                    "description": repo.get("description"),
                    "language": repo.get("language"),
                    "stars": repo.get("stargazers_count", 0),
                    "forks": repo.get("forks_count", 0),
                    "html_url": repo.get("html_url"),
                    "updated_at": repo.get("updated_at"),
                    "topics": repo.get("topics", []),
                })

        languages = Counter(r["language"] for r in repositories if r["language"])
        repositories.sort(key=lambda r: r["stars"], reverse=True)

        return {
            "username": username,
            "profile": profile,
            "repositories": repositories,
            "languages": {"summary": [[lang, count] for lang, count in languages.most_common()]},
            "stats": {
                "total_stars": sum(r["stars"] for r in repositories),
                "total_forks": sum(r["forks"] for r in repositories),
            },
        }
