"""
Tests for whyrun.cli - argument parsing, rendering and exit codes.
The collector is patched out; engines run for real.
"""

from __future__ import annotations

import json
from unittest.mock import patch

import psutil
import pytest

from whyrun import cli
from whyrun.models import Process, SourceInfo, SourceType

ANCESTRY = [
    Process(pid=1, command="systemd"),
    Process(pid=10, command="pm2", ppid=1),
    Process(pid=20, command="node", ppid=10, user="root", bind_addresses=("0.0.0.0",)),
]


@pytest.fixture
def collector():
    with patch("whyrun.cli.get_listen_addresses_by_pid", return_value={}), \
            patch("whyrun.cli.get_ancestry", return_value=list(ANCESTRY)) as anc, \
            patch("whyrun.cli.get_siblings", return_value=[]) as sib:
        yield anc, sib


class TestParser:
    """Tests for build_parser"""

    def test_pid(self):
        args = cli.build_parser().parse_args(["123"])
        assert args.pid == 123
        assert args.name is None

    def test_name(self):
        args = cli.build_parser().parse_args(["--name", "nginx", "--json"])
        assert args.name == "nginx"
        assert args.json is True

    def test_requires_target(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestExplain:
    """Tests for explain()"""

    def test_source_and_warnings(self, collector):
        target, ancestry, info, warns = cli.explain(20, {})
        assert target.command == "node"
        assert info == SourceInfo(SourceType.SUPERVISOR, "pm2")
        assert any("root" in w for w in warns)
        assert any("public" in w for w in warns)

    def test_siblings_are_inspected(self, collector):
        _, sib = collector
        sib.return_value = [Process(pid=30 + i, command="node", ppid=10) for i in range(4)]
        _, _, _, warns = cli.explain(20, {})
        assert any("restart" in w for w in warns)

    def test_no_siblings(self, collector):
        _, sib = collector
        cli.explain(20, {}, include_siblings=False)
        sib.assert_not_called()

    def test_extra_sources_from_config(self, collector):
        anc, _ = collector
        anc.return_value = [Process(pid=1, command="bash"), Process(pid=2, command="mysup"), Process(pid=3, command="x")]
        _, _, info, _ = cli.explain(3, {"sources": {"supervisor": ["mysup"]}})
        assert info == SourceInfo(SourceType.SUPERVISOR, "mysup")


class TestMain:
    """Tests for main() output and exit codes"""

    def test_text_output(self, collector, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["20"])
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "supervisor (pm2)" in out
        assert "systemd (1) -> pm2 (10) -> node (20)" in out
        assert "running as root" in out

    def test_json_output(self, collector, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.main(["20", "--json"])
        assert exc.value.code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["source"] == {"type": "supervisor", "name": "pm2"}
        assert data["target"]["pid"] == 20
        assert [p["command"] for p in data["ancestry"]] == ["systemd", "pm2", "node"]
        assert data["warnings"]

    def test_missing_process(self, capsys):
        with patch("whyrun.cli.get_listen_addresses_by_pid", return_value={}), \
                patch("whyrun.cli.get_ancestry", side_effect=psutil.NoSuchProcess(999)):
            with pytest.raises(SystemExit) as exc:
                cli.main(["999"])
        assert exc.value.code == 1
        assert "not found" in capsys.readouterr().err

    def test_access_denied(self, capsys):
        with patch("whyrun.cli.get_listen_addresses_by_pid", return_value={}), \
                patch("whyrun.cli.get_ancestry", side_effect=psutil.AccessDenied(1)):
            with pytest.raises(SystemExit) as exc:
                cli.main(["1"])
        assert exc.value.code == 1
        assert "Access denied" in capsys.readouterr().err

    def test_name_lookup(self, collector, capsys):
        with patch("whyrun.cli.find_pids_by_name", return_value=[20, 21]):
            with pytest.raises(SystemExit) as exc:
                cli.main(["--name", "node"])
        assert exc.value.code == 0
        captured = capsys.readouterr()
        assert "using pid 20" in captured.err
        assert "node" in captured.out

    def test_name_not_found(self, capsys):
        with patch("whyrun.cli.find_pids_by_name", return_value=[]):
            with pytest.raises(SystemExit) as exc:
                cli.main(["--name", "ghost"])
        assert exc.value.code == 1
        assert "No process named ghost" in capsys.readouterr().err


class TestRendering:
    """Tests for text rendering helpers"""

    def test_unknown_source(self):
        assert cli.describe_source(SourceInfo.unknown()) == "unknown launcher"

    def test_no_warnings(self):
        text = cli.render_text(ANCESTRY[-1], ANCESTRY, SourceInfo.unknown(), [])
        assert "none" in text


class TestBadConfig:
    """Invalid configuration never ends in a traceback"""

    def test_invalid_file_values_fall_back(self, collector, tmp_path, capsys):
        path = tmp_path / "whyrun.yml"
        path.write_text("service_match: regex\nstale_days: soon\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc:
            cli.main(["20", "--config", str(path)])
        assert exc.value.code == 0
        captured = capsys.readouterr()
        assert "Could not load config" in captured.err
        assert "supervisor (pm2)" in captured.out

    def test_invalid_value_exits_1(self, collector, capsys):
        with patch("whyrun.cli.load_config", return_value={"service_match": "regex"}):
            with pytest.raises(SystemExit) as exc:
                cli.main(["20"])
        assert exc.value.code == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_scalar_source_from_file(self, collector, tmp_path, capsys):
        anc, _ = collector
        anc.return_value = [Process(pid=1, command="bash"), Process(pid=2, command="mysup"), Process(pid=3, command="x")]
        path = tmp_path / "whyrun.yml"
        path.write_text("sources:\n  supervisor: mysup\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc:
            cli.main(["3", "--config", str(path), "--json"])
        assert exc.value.code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["source"] == {"type": "supervisor", "name": "mysup"}
