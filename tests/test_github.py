"""Tests for the GitHub profile client."""

import pytest
import requests
from unittest.mock import Mock, patch

from integrations.github import GitHubClient, parse_username


def make_response(status_code=200, json_data=None, headers=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.headers = headers or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


class TestParseUsername:
    @pytest.mark.parametrize("value,expected", [
        ("octocat", "octocat"),
        ("@octocat", "octocat"),
        ("https://github.com/octocat", "octocat"),
        ("https://github.com/octocat/hello-world/", "octocat"),
        ("  github.com/octo-cat?tab=repos ", "octo-cat"),
    ])
    def test_valid(self, value, expected):
        assert parse_username(value) == expected

    @pytest.mark.parametrize("value", ["", "-octocat", "https://github.com/", "not a user"])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid GitHub username"):
            parse_username(value)


class TestGitHubClient:
    def test_token_header(self):
        assert GitHubClient(token="t").headers["Authorization"] == "Bearer t"
        assert "Authorization" not in GitHubClient().headers

    @patch("integrations.github.requests.get")
    def test_user_not_found(self, mock_get):
        mock_get.return_value = make_response(404)
        with pytest.raises(ValueError, match="not found"):
            GitHubClient().get_user("ghost")

    @patch("integrations.github.time.sleep")
    @patch("integrations.github.requests.get")
    def test_retries_after_rate_limit(self, mock_get, mock_sleep):
        mock_get.side_effect = [
            make_response(429, headers={"X-RateLimit-Reset": "0"}),
            make_response(200, {"login": "octocat"}),
        ]
        assert GitHubClient().get_user("octocat") == {"login": "octocat"}
        mock_sleep.assert_called_once_with(60)

    @patch("integrations.github.requests.get")
    def test_analyze_user(self, mock_get):
        user = {"name": "The Octocat", "bio": "Mascot", "followers": 10, "public_repos": 3}
        repos = [
            {"name": "small", "language": "Go", "stargazers_count": 1, "forks_count": 0},
            {"name": "fork", "fork": True, "language": "C", "stargazers_count": 100},
            {"name": "big", "language": "Python", "stargazers_count": 50, "forks_count": 4},
            {"name": "tool", "language": "Python", "stargazers_count": 5, "forks_count": 1},
        ]
        mock_get.side_effect = [make_response(200, user), make_response(200, repos)]

        result = GitHubClient().analyze_user("https://github.com/octocat")

        assert result["username"] == "octocat"
        assert result["profile"]["name"] == "The Octocat"
        assert result["profile"]["html_url"] == "https://github.com/octocat"
        assert [r["name"] for r in result["repositories"]] == ["big", "tool", "small"]
        assert result["languages"]["summary"] == [["Python", 2], ["Go", 1]]
        assert result["stats"] == {"total_stars": 56, "total_forks": 5}

    @patch("integrations.github.requests.get")
    def test_analyze_without_repos(self, mock_get):
        mock_get.return_value = make_response(200, {"name": "Ada"})
        result = GitHubClient().analyze_user("ada", include_repos=False)
        assert result["repositories"] == []
        assert mock_get.call_count == 1
