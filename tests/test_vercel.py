"""Tests for the Vercel deployment client."""

import pytest
import requests
from unittest.mock import Mock, patch

from integrations.vercel import VercelClient, VercelError, sanitize_project_name


def make_response(status_code=200, json_data=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    response.text = text
    return response


class TestSanitizeProjectName:
    @pytest.mark.parametrize("name,expected", [
        ("My Portfolio!", "my-portfolio"),
        ("--ada__site--", "ada-site"),
        ("a" * 80, "a" * 63),
        ("!!!", ""),
    ])
    def test_sanitize(self, name, expected):
        assert sanitize_project_name(name) == expected


class TestVercelClient:
    def test_requires_token(self):
        with pytest.raises(ValueError):
            VercelClient("")

    @patch("integrations.vercel.requests.request")
    def test_team_params(self, mock_request):
        mock_request.return_value = make_response(200, {"id": "dpl_1"})
        VercelClient("tok", team_id="team_1", team_slug="heysme").get_deployment("dpl_1")
        kwargs = mock_request.call_args[1]
        assert kwargs["params"] == {"teamId": "team_1", "slug": "heysme"}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"

    @patch("integrations.vercel.requests.request")
    def test_error_message_from_body(self, mock_request):
        mock_request.return_value = make_response(403, {"error": {"message": "Not authorized"}})
        with pytest.raises(VercelError) as exc_info:
            VercelClient("tok").get_deployment("dpl_1")
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Not authorized"

    @patch("integrations.vercel.requests.request")
    def test_create_deployment_body(self, mock_request):
        mock_request.return_value = make_response(200, {"id": "dpl_1"})
        files = [{"path": "app/page.tsx", "content": "x"}, {"filename": "package.json", "content": "{}"}]

        VercelClient("tok").create_deployment("site", files, meta={"user": "u1"})

        body = mock_request.call_args[1]["json"]
        assert body["files"] == [{"file": "app/page.tsx", "data": "x"}, {"file": "package.json", "data": "{}"}]
        assert body["target"] == "preview"
        assert body["gitMetadata"]["commitMessage"] == "Deploy site via API"
        assert body["projectSettings"]["buildCommand"] == "npm run build"
        assert body["meta"]["source"] == "heysme-api"
        assert body["meta"]["user"] == "u1"

    def test_describe(self):
        status = VercelClient.describe({"id": "dpl_1", "url": "site.vercel.app", "readyState": "READY", "createdAt": 1})
        assert status == {"id": "dpl_1", "url": "https://site.vercel.app", "state": "READY", "created_at": 1, "ready_at": None}

    @patch("integrations.vercel.time.sleep")
    def test_wait_retries_transient_errors(self, mock_sleep):
        client = VercelClient("tok", max_attempts=5)
        client.get_deployment = Mock(side_effect=[
            requests.ConnectionError("reset"),
            {"id": "dpl_1", "readyState": "BUILDING"},
            {"id": "dpl_1", "readyState": "READY", "url": "x.vercel.app"},
        ])
        assert client.wait_for_deployment("dpl_1")["url"] == "https://x.vercel.app"
        assert mock_sleep.call_count == 2

    @patch("integrations.vercel.time.sleep")
    def test_wait_fails_on_error_state(self, mock_sleep):
        client = VercelClient("tok")
        client.get_deployment = Mock(return_value={"id": "dpl_1", "readyState": "ERROR"})
        with pytest.raises(VercelError, match="ERROR"):
            client.wait_for_deployment("dpl_1")

    @patch("integrations.vercel.time.sleep")
    def test_wait_times_out(self, mock_sleep):
        client = VercelClient("tok", max_attempts=3)
        client.get_deployment = Mock(return_value={"id": "dpl_1", "readyState": "QUEUED"})
        with pytest.raises(VercelError) as exc_info:
            client.wait_for_deployment("dpl_1")
        assert exc_info.value.status_code == 504
        assert client.get_deployment.call_count == 3

    @patch("integrations.vercel.requests.request")
    def test_deploy_project_existing_project(self, mock_request):
        mock_request.side_effect = [
            make_response(409),
            make_response(200, {"id": "dpl_1", "url": "p.vercel.app", "readyState": "QUEUED"}),
        ]
        status = VercelClient("tok").deploy_project("My Project", [{"path": "a", "content": ""}], wait=False)
        assert status["state"] == "QUEUED"
        assert mock_request.call_args_list[0][1]["json"]["name"] == "my-project"

    def test_deploy_project_invalid_name(self):
        with pytest.raises(ValueError):
            VercelClient("tok").deploy_project("!!!", [])
