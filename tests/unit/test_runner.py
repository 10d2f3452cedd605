"""Unit tests for the run orchestrator."""

import json
import logging
from datetime import datetime, timezone

import pytest

from case_staleness import runner
from case_staleness.config import Settings
from case_staleness.errors import FetchError, GraphConnectionError, RenderError
from case_staleness.runner import build_output_paths, parse_args, render_reports, run

NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def raw_issue(item_id, last_modified, status="investigating"):
    return {
        "id": item_id,
        "title": f"Issue {item_id}",
        "impactDescription": "Some users affected",
        "status": status,
        "classification": "advisory",
        "startDateTime": "2025-01-01T00:00:00Z",
        "lastModifiedDateTime": last_modified,
        "service": "SharePoint Online",
        "feature": "",
    }


class StubSession:
    def __init__(self, settings, items=None, connect_error=None, fetch_error=None):
        self.settings = settings
        self.items = items or []
        self.connect_error = connect_error
        self.fetch_error = fetch_error
        self.connected = False
        self.disconnects = 0

    def connect(self):
        if self.connect_error:
            raise self.connect_error
        self.connected = True

    def get_collection(self, path, params=None):
        if self.fetch_error:
            raise self.fetch_error
        if "incident" in params["$filter"]:
            return []
        return self.items

    def disconnect(self):
        self.disconnects += 1
        self.connected = False


@pytest.fixture
def settings():
    return Settings(tenant_id="t", client_id="c", client_secret="s")


@pytest.fixture
def paths(tmp_path):
    return build_output_paths(tmp_path, "SupportCase", NOW)


@pytest.mark.unit
class TestArgs:
    def test_defaults(self):
        args = parse_args([])
        assert str(args.config_path) == "config.json"
        assert str(args.output_dir) == "Reports"
        assert args.stale_hours == 48

    def test_overrides(self):
        args = parse_args(["--config-path", "c.json", "--output-dir", "out", "--stale-hours", "24"])
        assert args.stale_hours == 24
        assert str(args.output_dir) == "out"

    @pytest.mark.parametrize("value", ["0", "-3", "abc"])
    def test_invalid_stale_hours(self, value):
        with pytest.raises(SystemExit):
            parse_args(["--stale-hours", value])


@pytest.mark.unit
class TestRun:
    def test_output_paths(self, tmp_path):
        paths = build_output_paths(tmp_path, "SupportCase", NOW)
        assert paths.csv.name == "SupportCase_Cases_20250110_120000.csv"
        assert paths.html.name == "SupportCase_Cases_20250110_120000.html"
        assert paths.log.name == "SupportCase_20250110_120000.log"

    def test_successful_run_writes_reports(self, settings, paths, capsys):
        holder = {}

        def factory(s):
            holder["session"] = StubSession(
                s,
                items=[
                    raw_issue("MO1", "2025-01-07T00:00:00Z"),
                    raw_issue("MO2", "2025-01-10T00:00:00Z"),
                    raw_issue("MO3", "garbage"),
                ],
            )
            return holder["session"]

        code = run(48, settings, paths, NOW, session_factory=factory)

        assert code == 0
        assert paths.csv.exists()
        assert paths.html.exists()
        assert holder["session"].disconnects == 1
        csv_text = paths.csv.read_text(encoding="utf-8-sig")
        assert "MO1" in csv_text and "MO2" in csv_text
        assert "MO3" not in csv_text
        assert "Stale cases:  1" in capsys.readouterr().out

    def test_connection_failure_exits_1_and_disconnects(self, settings, paths):
        holder = {}

        def factory(s):
            holder["session"] = StubSession(s, connect_error=GraphConnectionError("denied"))
            return holder["session"]

        assert run(48, settings, paths, NOW, session_factory=factory) == 1
        assert holder["session"].disconnects == 1
        assert not paths.csv.exists()

    def test_fetch_failure_still_produces_empty_reports(self, settings, paths):
        factory = lambda s: StubSession(s, fetch_error=FetchError("timeout"))
        assert run(48, settings, paths, NOW, session_factory=factory) == 0
        assert paths.csv.read_text(encoding="utf-8-sig").count("\n") == 1
        assert 'id="total-count">0<' in paths.html.read_text(encoding="utf-8")

    def test_render_failure_is_isolated(self, monkeypatch, make_bundle, paths):
        def broken(bundle, path):
            raise RenderError("file locked")

        monkeypatch.setattr(runner, "write_csv", broken)
        written = render_reports(make_bundle([84]), paths)
        assert written["csv"] is None
        assert written["html"] == paths.html
        assert paths.html.exists()


@pytest.fixture(autouse=True)
def reset_package_logger():
    yield
    package_logger = logging.getLogger("case_staleness")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.mark.unit
class TestMain:
    def test_config_error_exits_1_and_logs(self, tmp_path, monkeypatch):
        for key in ("CASE_REPORT_TENANT_ID", "CASE_REPORT_CLIENT_ID", "CASE_REPORT_CLIENT_SECRET"):
            monkeypatch.delenv(key, raising=False)
        monkeypatch.chdir(tmp_path)
        out_dir = tmp_path / "Reports"

        code = runner.main(["--config-path", str(tmp_path / "missing.json"), "--output-dir", str(out_dir)])

        assert code == 1
        logs = list(out_dir.glob("SupportCase_*.log"))
        assert len(logs) == 1
        assert "Configuration error" in logs[0].read_text(encoding="utf-8")

    def test_unusable_output_dir_exits_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        blocker = tmp_path / "Reports"
        blocker.write_text("not a directory")

        code = runner.main(["--config-path", str(tmp_path / "missing.json"), "--output-dir", str(blocker)])

        assert code == 1
        assert blocker.read_text() == "not a directory"

    def test_main_runs_pipeline(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = tmp_path / "config.json"
        config.write_text(
            json.dumps({"tenantId": "t", "clientId": "c", "clientSecret": "s"}), encoding="utf-8"
        )
        monkeypatch.setattr(
            runner,
            "GraphSession",
            lambda s: StubSession(s, items=[raw_issue("MO1", "2025-01-07T00:00:00Z")]),
        )

        code = runner.main(["--config-path", str(config), "--output-dir", str(tmp_path / "out")])

        assert code == 0
        assert len(list((tmp_path / "out").glob("SupportCase_Cases_*.csv"))) == 1
        assert len(list((tmp_path / "out").glob("SupportCase_Cases_*.html"))) == 1
