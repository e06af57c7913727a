"""
Tests for the heartbeat health CLI.
"""

import json

import pytest

from cli import health
from life_os import paths
from life_os.clock import SystemClock
from life_os.heartbeat import HeartbeatRecorder


@pytest.fixture
def heartbeat_file(tmp_path):
    path = tmp_path / "engine-heartbeat.json"
    recorder = HeartbeatRecorder(path, SystemClock(), step_timeout=30)
    recorder.start()
    recorder.beat("gather-context")
    recorder.record_work("cycle 1", duration_ms=420)
    recorder.record_error("gather-context timed out")
    recorder.flush()
    return path


class TestNoData:
    def test_plain(self, capsys):
        assert health.main([]) == 0
        assert "No heartbeat data yet" in capsys.readouterr().out

    def test_json(self, capsys):
        assert health.main(["--json"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out == {"status": "no_data", "file": str(paths.heartbeat_path())}


class TestViews:
    def test_status(self, heartbeat_file, capsys):
        assert health.main(["--file", str(heartbeat_file)]) == 0
        out = capsys.readouterr().out
        assert "LIFE ENGINE HEALTH" in out
        assert "RUNNING" in out
        assert "Work items:   1" in out
        assert "gather-context timed out" in out

    def test_status_json(self, heartbeat_file, capsys):
        assert health.main(["status", "--json", "-f", str(heartbeat_file)]) == 0
        view = json.loads(capsys.readouterr().out)
        assert view["status"] == "running"
        assert view["total_errors"] == 1

    def test_hourly(self, heartbeat_file, capsys):
        assert health.main(["hourly", "--file", str(heartbeat_file)]) == 0
        out = capsys.readouterr().out
        assert "HOURLY LOG (24h)" in out
        assert "Beats" in out

    def test_hourly_json(self, heartbeat_file, capsys):
        assert health.main(["hourly", "--json", "--file", str(heartbeat_file)]) == 0
        assert len(json.loads(capsys.readouterr().out)["hourly_log"]) == 24

    def test_actions(self, heartbeat_file, capsys):
        assert health.main(["actions", "--file", str(heartbeat_file)]) == 0
        out = capsys.readouterr().out
        assert "RECENT ACTIONS" in out
        assert "cycle 1" in out
        assert "420" in out

    def test_stalled_with_short_step_timeout(self, tmp_path, capsys):
        path = tmp_path / "hb.json"
        path.write_text(
            json.dumps({"status": "running", "last_beat": "2020-01-01T00:00:00+00:00"})
        )
        assert health.main(["--json", "--file", str(path), "--step-timeout", "1"]) == 0
        assert json.loads(capsys.readouterr().out)["status"] == "stalled"

    def test_unknown_view_rejected(self):
        with pytest.raises(SystemExit):
            health.main(["weekly"])
