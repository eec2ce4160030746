"""Tests for agileflow.teams.bus module."""

import json
from datetime import datetime

from agileflow.lib.paths import get_bus_log_path
from agileflow.teams.bus import (
    get_agent_context,
    get_archive_path,
    get_line_count,
    get_log_stats,
    iter_recent_lines,
    iter_recent_messages,
    read_messages,
    rotate_log,
    send_message,
    send_task_assignment,
    should_rotate,
)


def _write_lines(path, count, start=0):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a") as f:
        for n in range(start, start + count):
            f.write(json.dumps({"from": "a", "type": "status", "at": "2026-01-01T00:00:00", "n": n}) + "\n")


class TestIterRecent:
    def test_most_recent_first_across_chunks(self, tmp_path):
        path = tmp_path / "log.jsonl"
        _write_lines(path, 50)
        lines = list(iter_recent_lines(path, chunk_size=64))
        assert len(lines) == 50
        assert [json.loads(line)["n"] for line in lines[:3]] == [49, 48, 47]
        assert json.loads(lines[-1])["n"] == 0

    def test_limit(self, tmp_path):
        path = tmp_path / "log.jsonl"
        _write_lines(path, 10)
        assert len(list(iter_recent_lines(path, limit=3, chunk_size=32))) == 3
        assert list(iter_recent_lines(path, limit=0)) == []

    def test_missing_file(self, tmp_path):
        assert list(iter_recent_lines(tmp_path / "nope.jsonl")) == []

    def test_no_trailing_newline(self, tmp_path):
        path = tmp_path / "log.jsonl"
        path.write_text('{"n": 1}\n{"n": 2}')
        assert [json.loads(line)["n"] for line in iter_recent_lines(path)] == [2, 1]

    def test_malformed_lines_skipped_but_counted(self, tmp_path):
        path = tmp_path / "log.jsonl"
        path.write_text('{"n": 1}\nnot json\n{"n": 3}\n')
        assert [m["n"] for m in iter_recent_messages(path)] == [3, 1]
        assert [m["n"] for m in iter_recent_messages(path, limit=2)] == [3]


class TestSendMessage:
    def test_stamps_and_appends(self, project_root):
        result = send_message(project_root, {"from": "agileflow-api", "to": "team-lead", "type": "status"})
        assert result.ok
        entry = result.messages[0]
        assert entry["agent_teams"] is False
        assert datetime.fromisoformat(entry["at"])

        lines = get_bus_log_path(project_root).read_text().splitlines()
        assert json.loads(lines[0]) == entry

    def test_agent_teams_flag(self, project_root, monkeypatch):
        monkeypatch.setenv("CLAUDE_CODE_EXPERIMENTAL_AGENT_TEAMS", "1")
        assert send_message(project_root, {"from": "a", "type": "status"}).messages[0]["agent_teams"] is True

    def test_invalid_message_not_written(self, project_root):
        result = send_message(project_root, {"type": "status"})
        assert not result.ok
        assert "bus-message" in result.error
        assert not get_bus_log_path(project_root).exists()

    def test_creates_bus_dir(self, tmp_path):
        assert send_task_assignment(tmp_path, "team-lead", "agileflow-ui", "T-7", "Build form").ok
        message = json.loads(get_bus_log_path(tmp_path).read_text())
        assert message["type"] == "task_assignment"
        assert message["to"] == "agileflow-ui"


class TestReadMessages:
    def test_filters_and_limit(self, project_root):
        send_message(project_root, {"from": "a", "to": "b", "type": "status"})
        send_message(project_root, {"from": "b", "to": "a", "type": "question"})
        send_message(project_root, {"from": "a", "to": "c", "type": "status"})

        assert len(read_messages(project_root).messages) == 3
        assert [m["to"] for m in read_messages(project_root, from_="a").messages] == ["b", "c"]
        assert [m["from"] for m in read_messages(project_root, to="a").messages] == ["b"]
        assert [m["to"] for m in read_messages(project_root, type_="status", limit=1).messages] == ["c"]

    def test_since(self, project_root):
        log = get_bus_log_path(project_root)
        log.write_text(
            json.dumps({"from": "a", "type": "t", "at": "2026-01-01T00:00:00Z"}) + "\n"
            + json.dumps({"from": "a", "type": "t", "at": "2026-02-01T00:00:00Z"}) + "\n"
            + json.dumps({"from": "a", "type": "t"}) + "\n"
        )
        result = read_messages(project_root, since="2026-01-15T00:00:00Z")
        assert [m["at"] for m in result.messages] == ["2026-02-01T00:00:00Z"]

    def test_invalid_since(self, project_root):
        result = read_messages(project_root, since="yesterday")
        assert result.ok  # no log yet
        send_message(project_root, {"from": "a", "type": "t"})
        result = read_messages(project_root, since="yesterday")
        assert not result.ok
        assert "Invalid since" in result.error

    def test_corrupted_lines_skipped(self, project_root, caplog):
        get_bus_log_path(project_root).write_text('{"from": "a", "type": "t"}\n{oops\n')
        result = read_messages(project_root)
        assert len(result.messages) == 1
        assert "corrupted bus line 2" in caplog.text

    def test_undecodable_bytes_skipped(self, project_root):
        with open(get_bus_log_path(project_root), "wb") as f:
            f.write(b'{"from": "a", "type": "t"}\n\xff\xfe garbage\n{"from": "b", "type": "t"}\n')
        result = read_messages(project_root)
        assert result.ok
        assert [m["from"] for m in result.messages] == ["a", "b"]

    def test_missing_log(self, project_root):
        result = read_messages(project_root)
        assert result.ok
        assert result.messages == []


class TestAgentContext:
    def test_direct_and_coordination(self, project_root):
        send_message(project_root, {"from": "lead", "to": "api", "type": "question"})
        send_message(project_root, {"from": "lead", "to": "ui", "type": "question"})
        send_message(project_root, {"from": "lead", "to": "all", "type": "coordination"})
        send_task_assignment(project_root, "lead", "api", "T-1")

        messages = get_agent_context(project_root, "api").messages
        assert [(m["to"], m["type"]) for m in messages] == [
            ("api", "question"), ("all", "coordination"), ("api", "task_assignment"),
        ]


class TestRotation:
    def test_no_rotation_below_threshold(self, tmp_path):
        log = tmp_path / "bus" / "log.jsonl"
        _write_lines(log, 10)
        result = rotate_log(log, keep_recent=5, threshold=10)
        assert result.ok
        assert result.archived == 0
        assert result.message == "No rotation needed"
        assert get_line_count(log) == 10

    def test_rotates_old_lines(self, tmp_path):
        log = tmp_path / "bus" / "log.jsonl"
        _write_lines(log, 12)
        with open(log, "a") as f:
            f.write("garbage\n")
        assert should_rotate(log, threshold=10)

        when = datetime(2026, 3, 15)
        result = rotate_log(log, keep_recent=5, threshold=10, when=when)
        assert result.ok
        assert (result.archived, result.kept) == (7, 5)
        assert result.archive_file == tmp_path / "bus" / "archive" / "2026-03-archive.jsonl"

        kept = [json.loads(line)["n"] for line in log.read_text().splitlines()]
        assert kept == [7, 8, 9, 10, 11]
        archived = [json.loads(line)["n"] for line in result.archive_file.read_text().splitlines()]
        assert archived == list(range(7))

    def test_rotation_drops_undecodable_lines(self, tmp_path):
        log = tmp_path / "log.jsonl"
        _write_lines(log, 4)
        with open(log, "ab") as f:
            f.write(b"\xff\xfe\n")
        result = rotate_log(log, keep_recent=2, threshold=3, when=datetime(2026, 3, 1))
        assert result.ok
        assert (result.archived, result.kept) == (2, 2)
        assert [json.loads(line)["n"] for line in log.read_text().splitlines()] == [2, 3]

    def test_archive_appends(self, tmp_path):
        log = tmp_path / "log.jsonl"
        when = datetime(2026, 3, 1)
        _write_lines(log, 4)
        rotate_log(log, keep_recent=1, threshold=2, when=when)
        _write_lines(log, 3, start=100)
        rotate_log(log, keep_recent=1, threshold=2, when=when)
        assert get_line_count(get_archive_path(log, when)) == 6
        assert get_line_count(log) == 1

    def test_stats(self, tmp_path):
        log = tmp_path / "log.jsonl"
        _write_lines(log, 6)
        rotate_log(log, keep_recent=2, threshold=3, when=datetime(2026, 1, 2))
        stats = get_log_stats(log)
        assert stats["current_lines"] == 2
        assert stats["current_size"] == log.stat().st_size
        assert stats["archives"][0]["filename"] == "2026-01-archive.jsonl"
        assert stats["total_archived"] == 4

    def test_stats_empty(self, tmp_path):
        stats = get_log_stats(tmp_path / "log.jsonl")
        assert stats == {"current_lines": 0, "current_size": 0, "archives": [], "total_archived": 0}
