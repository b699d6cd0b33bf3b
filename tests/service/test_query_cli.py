"""Tests for the spanlab-query client, routed to an in-process app."""
import json

import httpx
import pytest
from click.testing import CliRunner
from fastapi.testclient import TestClient

from spanlab.extraction.config import get_preset
from spanlab.extraction.pipeline import SpanExtractor
from spanlab.service import cli as query_cli
from spanlab.service.app import create_app


@pytest.fixture
def service(monkeypatch):
    app = create_app(extractor=SpanExtractor(config=get_preset("fast")), warmup=False)
    sent = []
    with TestClient(app) as client:
        def post(url, json=None, timeout=None):
            sent.append((url, json))
            return client.post("/spans", json=json)

        monkeypatch.setattr(query_cli.httpx, "post", post)
        yield sent


class TestQueryCli:
    def test_table_output(self, service, example_prompt):
        result = CliRunner().invoke(query_cli.main, [example_prompt])
        assert result.exit_code == 0
        assert "camera.movement" in result.output
        assert "pans" in result.output
        assert service[0] == ("http://localhost:8000/spans", {"text": example_prompt})

    def test_json_output_and_flags(self, service):
        result = CliRunner().invoke(query_cli.main, ["a woman walks", "--json", "--no-actions", "--no-lighting"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["stats"]["tiers"] == ["closed_vocab", "patterns"]
        assert service[0][1] == {"text": "a woman walks", "use_action_heuristics": False, "use_lighting": False}

    def test_fallback_notice(self, service):
        result = CliRunner().invoke(query_cli.main, ["nothing useful here"])
        assert result.exit_code == 0
        assert "No spans found." in result.output
        assert "Fallback recommended" in result.output

    def test_connection_error(self, monkeypatch):
        def refuse(url, json=None, timeout=None):
            raise httpx.ConnectError("refused")

        monkeypatch.setattr(query_cli.httpx, "post", refuse)
        result = CliRunner().invoke(query_cli.main, ["35mm"])
        assert result.exit_code == 1
        assert "Could not connect" in result.output


def test_format_table_truncates_long_text():
    table = query_cli._format_table([
        {"text": "x" * 60, "role": "subject.identity", "confidence": 0.9, "start": 0, "end": 60},
    ])
    assert "x" * 37 + "..." in table
