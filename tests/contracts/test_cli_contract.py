"""
Contract tests for the operator CLI.

Scope:
- Help behavior and exit codes
- process: payload reading, dispatch result rendering, error exit codes
- descendants: JSON and human-readable outputs
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from mdb.cli.main import app
from mdb.domain.events import EntityRef, Event
from mdb.infra.exceptions import FileNotFound, OperationError
from mdb.usecases.dispatcher import DispatchResult


@pytest.fixture(autouse=True)
def _quiet_logging():
    with patch("mdb.cli.main.configure_logging"):
        yield


def _dispatcher_returning(result: DispatchResult) -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.process.return_value = result
    return dispatcher


class TestProcessContract:
    def setup_method(self):
        self.runner = CliRunner()

    def test_help_flag_exits_zero(self):
        result = self.runner.invoke(app, ["process", "--help"], env={"COLUMNS": "200"})
        assert result.exit_code == 0
        assert "Process one studio pipeline operation" in result.output
        assert "--json" in result.output

    def test_payload_is_passed_to_dispatcher(self, tmp_path):
        payload = {"operation": {"station": "s", "user": "u@example.com"}, "file_name": "c.mp4"}
        path = tmp_path / "capture_start.json"
        path.write_text(json.dumps(payload))
        dispatcher = _dispatcher_returning(DispatchResult(operation_uid="op000001"))

        with patch("mdb.cli.main._build_dispatcher", return_value=dispatcher):
            result = self.runner.invoke(app, ["process", "capture_start", str(path)])

        assert result.exit_code == 0
        dispatcher.process.assert_called_once_with("capture_start", payload)
        assert "op000001" in result.stdout

    def test_json_output_lists_events(self, tmp_path):
        path = tmp_path / "insert.json"
        path.write_text("{}")
        events = [Event("file-inserted", EntityRef(id=5, uid="file0005"))]
        dispatcher = _dispatcher_returning(DispatchResult(events=events, operation_uid="op000002"))

        with patch("mdb.cli.main._build_dispatcher", return_value=dispatcher):
            result = self.runner.invoke(app, ["process", "insert", str(path), "--json"])

        assert result.exit_code == 0
        body = json.loads(result.stdout)
        assert body["status"] == "ok"
        assert body["operation_uid"] == "op000002"
        assert body["events"] == [{"type": "file-inserted", "id": 5, "uid": "file0005"}]

    def test_failed_operation_exits_one(self, tmp_path):
        path = tmp_path / "demux.json"
        path.write_text("{}")
        error = OperationError("demux", FileNotFound("ab" * 20, "parent"))
        dispatcher = _dispatcher_returning(DispatchResult(error=error))

        with patch("mdb.cli.main._build_dispatcher", return_value=dispatcher):
            result = self.runner.invoke(app, ["process", "demux", str(path), "--json"])

        assert result.exit_code == 1
        body = json.loads(result.stdout)
        assert body["status"] == "error"
        assert "parent not found" in body["error"]

    def test_unreadable_payload_exits_two(self, tmp_path):
        with patch("mdb.cli.main._build_dispatcher") as build:
            result = self.runner.invoke(app, ["process", "send", str(tmp_path / "missing.json")])

        assert result.exit_code == 2
        build.assert_not_called()

    def test_payload_must_be_an_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with patch("mdb.cli.main._build_dispatcher") as build:
            result = self.runner.invoke(app, ["process", "send", str(path)])

        assert result.exit_code == 2
        build.assert_not_called()


class TestDescendantsContract:
    def setup_method(self):
        self.runner = CliRunner()

    def test_json_output(self):
        rows = [
            {
                "id": 1,
                "uid": "unit0001",
                "type": "LESSON_PART",
                "published": True,
                "properties": {"capture_date": "2026-01-05"},
            }
        ]
        with patch("mdb.usecases.descendant_units.list_descendant_units", return_value=rows):
            result = self.runner.invoke(app, ["descendants", "ab" * 20, "--json"])

        assert result.exit_code == 0
        body = json.loads(result.stdout)
        assert body["status"] == "ok"
        assert body["total"] == 1
        assert body["content_units"][0]["uid"] == "unit0001"

    def test_no_units_prints_message(self):
        with patch("mdb.usecases.descendant_units.list_descendant_units", return_value=[]):
            result = self.runner.invoke(app, ["descendants", "ab" * 20])

        assert result.exit_code == 0
        assert "No content units found" in result.stdout

    def test_unknown_file_exits_one(self):
        with patch(
            "mdb.usecases.descendant_units.list_descendant_units",
            side_effect=FileNotFound("ab" * 20),
        ):
            result = self.runner.invoke(app, ["descendants", "ab" * 20])

        assert result.exit_code == 1

    def test_against_database(self, pipeline, sha1):
        pipeline.recording("wf-1", "cap-1", "r")
        pipeline.send("r_orig", "r_proxy", {"content_type": "LESSON_PART", "part": 1})

        result = self.runner.invoke(app, ["descendants", sha1("r_capture"), "--json"])

        assert result.exit_code == 0
        body = json.loads(result.stdout)
        assert [row["type"] for row in body["content_units"]] == ["LESSON_PART"]
