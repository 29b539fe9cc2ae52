"""Tests for the command line interface."""

import json
import sys

import httpx
import pytest
from click.testing import CliRunner

import cli as cli_module
from cli import SAMPLE_JOBS, cli


@pytest.fixture
def runner():
    return CliRunner()


def fake_response(method, url, payload, status_code=200):
    return httpx.Response(status_code, json=payload, request=httpx.Request(method, url))


JOBS_PAYLOAD = {
    "totalJobs": 2,
    "jobs": [
        {"id": "a1", "name": "render", "arguments": ["x"], "status": "failed", "startTime": "t",
         "endTime": "t", "duration": 1500, "retryCount": 0, "originalJobId": None},
        {"id": "b2", "name": "render", "arguments": ["x"], "status": "completed", "startTime": "t",
         "endTime": "t", "duration": 250, "retryCount": 1, "originalJobId": "a1"},
    ],
}

STATS_PAYLOAD = {
    "totalJobs": 2,
    "overallSuccessRate": 0.5,
    "patterns": [
        {"pattern": "Job name contains digits", "matchCount": 1, "successRate": 1.0, "differenceFromAverage": "+50%"},
    ],
}


class TestLocalCommands:
    def test_config_shows_settings(self, runner, monkeypatch):
        monkeypatch.setenv("PORT", "4100")

        result = runner.invoke(cli, ["config"])

        assert result.exit_code == 0
        assert "port=4100" in result.output
        assert "max_retries=1" in result.output

    def test_platform(self, runner, monkeypatch):
        monkeypatch.setenv("SIMULATOR_COMMAND", "/opt/sim")

        result = runner.invoke(cli, ["platform"])

        assert result.exit_code == 0
        assert f"Platform detected: {sys.platform}" in result.output
        assert '"command": "/opt/sim"' in result.output

    @pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh")
    def test_run_direct(self, runner, monkeypatch):
        monkeypatch.setenv("SIMULATOR_COMMAND", "/bin/sh")
        monkeypatch.setenv("SIMULATOR_ARGS", json.dumps(["-c", "echo $0 $1"]))
        monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")

        result = runner.invoke(cli, ["run", "platform-test", "cross-platform"])

        assert result.exit_code == 0, result.output
        assert "✓ Job started:" in result.output
        assert "platform-test: completed" in result.output
        assert "✓ Stats generated: 1 jobs, 1.0 success rate" in result.output

    @pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh")
    def test_run_direct_with_retry(self, runner, monkeypatch):
        monkeypatch.setenv("SIMULATOR_COMMAND", "/bin/sh")
        monkeypatch.setenv("SIMULATOR_ARGS", json.dumps(["-c", "exit 2"]))
        monkeypatch.setenv("RETRY_DELAY_SECONDS", "0")

        result = runner.invoke(cli, ["run", "doomed"])

        assert result.exit_code == 0, result.output
        assert result.output.count("doomed: failed") == 2
        assert "✓ Stats generated: 2 jobs, 0.0 success rate" in result.output


class TestHttpCommands:
    def test_list(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module.httpx, "get", lambda url: fake_response("GET", url, JOBS_PAYLOAD))

        result = runner.invoke(cli, ["list", "--base-url", "http://server:3000/"])

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("a1 | render | args=x | status=failed")
        assert "duration=1.500s" in lines[0]
        assert "retry_of=a1" in lines[1]

    def test_list_filter(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module.httpx, "get", lambda url: fake_response("GET", url, JOBS_PAYLOAD))

        result = runner.invoke(cli, ["list", "--status", "crashed"])

        assert result.output.strip() == "No jobs found."

    def test_stats(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module.httpx, "get", lambda url: fake_response("GET", url, STATS_PAYLOAD))

        result = runner.invoke(cli, ["stats"])

        assert result.exit_code == 0
        assert "Overall success rate: 0.50" in result.output
        assert "Job name contains digits: matches=1 success=1.00 (+50%)" in result.output

    def test_server_error(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module.httpx, "get", lambda url: fake_response("GET", url, {"error": "x"}, 500))

        result = runner.invoke(cli, ["stats"])

        assert result.exit_code == 1
        assert "Failed to fetch stats" in result.output

    def test_smoke(self, runner, monkeypatch):
        posted = []

        def fake_post(url, json):
            posted.append(json)
            return fake_response("POST", url, {"jobId": f"id-{len(posted)}"}, 201)

        def fake_get(url):
            return fake_response("GET", url, JOBS_PAYLOAD if url.endswith("/jobs") else STATS_PAYLOAD)

        monkeypatch.setattr(cli_module.httpx, "post", fake_post)
        monkeypatch.setattr(cli_module.httpx, "get", fake_get)

        result = runner.invoke(cli, ["smoke", "--wait", "0"])

        assert result.exit_code == 0, result.output
        assert sorted(p["jobName"] for p in posted) == sorted(j["jobName"] for j in SAMPLE_JOBS)
        assert "8/8 jobs started" in result.output
        assert '"overallSuccessRate": 0.5' in result.output
