"""Tests for output formatting utilities."""

import json
from datetime import datetime, timezone

import pytest
import yaml

from relctl.core.output import OutputFormat, OutputFormatter, format_duration, format_since
from relctl.release.models import Action, OperationResult, Outcome, StageResult


class TestFormatDuration:
    """Tests for format_duration utility."""

    def test_seconds(self):
        assert format_duration(30) == "30.0s"
        assert format_duration(59.9) == "59.9s"

    def test_minutes(self):
        assert format_duration(60) == "1.0m"
        assert format_duration(90) == "1.5m"

    def test_hours(self):
        assert format_duration(3600) == "1.0h"
        assert format_duration(7200) == "2.0h"

    def test_days(self):
        assert format_duration(86400) == "1.0d"


class TestOutputFormatter:
    """Tests for OutputFormatter class."""

    def test_quiet_mode_suppresses_output(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print("test message")
        formatter.print_info("info message")
        formatter.print_warning("warning message")
        formatter.print_success("success message")
        formatter.print_panel("panel message")
        captured = capsys.readouterr()
        assert captured.out == ""

    def test_error_always_prints(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print_error("error message")
        captured = capsys.readouterr()
        assert "error message" in captured.err

    def test_json_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.JSON, color=False)
        data = {"action": "canary-promote", "outcome": "succeeded", "stages": []}
        formatter.print_data(data)
        captured = capsys.readouterr()
        assert json.loads(captured.out) == data

    def test_yaml_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.YAML, color=False)
        data = {"active_color": "green", "canary_weight": 25}
        formatter.print_data(data)
        captured = capsys.readouterr()
        assert yaml.safe_load(captured.out) == data

    def test_raw_output_dict(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.RAW, color=False)
        formatter.print_data({"active_color": "blue", "canary_weight": 0})
        captured = capsys.readouterr()
        assert "active_color: blue" in captured.out
        assert "canary_weight: 0" in captured.out

    def test_table_output_list(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.TABLE, color=False)
        formatter.print_data(
            [{"stage": "scale-down", "result": "ok"}],
            headers=["stage", "result"],
        )
        captured = capsys.readouterr()
        assert "scale-down" in captured.out

    def test_table_output_empty(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.TABLE, color=False)
        formatter.print_data([])
        captured = capsys.readouterr()
        assert "No data" in captured.out

    @pytest.mark.parametrize("answer,expected", [("y\n", True), ("yes\n", True), ("n\n", False), ("\n", False)])
    def test_confirm(self, monkeypatch, answer, expected):
        monkeypatch.setattr("builtins.input", lambda: answer.strip())
        formatter = OutputFormatter(color=False)
        assert formatter.confirm("Switch traffic?") is expected

    def test_confirm_eof(self, monkeypatch):
        def raise_eof():
            raise EOFError

        monkeypatch.setattr("builtins.input", raise_eof)
        assert OutputFormatter(color=False).confirm("Switch traffic?", default=True) is False


class TestOutputFormat:
    """Tests for OutputFormat enum."""

    def test_values(self):
        assert OutputFormat.TABLE.value == "table"
        assert OutputFormat.JSON.value == "json"
        assert OutputFormat.YAML.value == "yaml"
        assert OutputFormat.RAW.value == "raw"

    def test_string_comparison(self):
        assert OutputFormat.TABLE == "table"


class TestFormatSince:
    """Tests for format_since."""

    def test_never(self):
        assert format_since(None) == "never"

    def test_relative(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert format_since("2026-01-01T11:58:30+00:00", now) == "1.5m ago"

    def test_future_clamped(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert format_since("2026-01-01T12:00:05+00:00", now) == "0.0s ago"


class TestPrintResult:
    """Tests for rendering operation results."""

    def test_success_with_stages(self, capsys):
        result = OperationResult(
            action=Action.BLUE_GREEN_SWITCH,
            phase="complete",
            message="Traffic on green",
            stages=[
                StageResult("health-check", True, "green is healthy"),
                StageResult("scale-down", True, "shop-blue scaled to 0"),
            ],
        )

        OutputFormatter(color=False).print_result(result)

        out = capsys.readouterr().out
        assert "Traffic on green" in out
        assert "blue-green-switch (complete)" in out
        assert "scale-down" in out

    def test_failure_goes_to_stderr(self, capsys):
        result = OperationResult(
            action=Action.CANARY_PROMOTE,
            outcome=Outcome.FAILED,
            error_type="HealthCheckFailed",
            message="health-check failed: canary is unhealthy",
            stages=[StageResult("health-check", False, "canary is unhealthy")],
        )

        OutputFormatter(color=False).print_result(result)

        captured = capsys.readouterr()
        assert "[HealthCheckFailed] health-check failed" in captured.err
        assert "failed" in captured.out

    def test_skipped_stage(self, capsys):
        result = OperationResult(
            action=Action.CANARY_SET_WEIGHT,
            outcome=Outcome.SUCCEEDED,
            message="Canary weight already 25%",
            stages=[StageResult("annotate-ingress", True, "already at 25%", skipped=True)],
        )

        OutputFormatter(color=False).print_result(result)

        assert "skipped" in capsys.readouterr().out

    def test_json_dumps_whole_result(self, capsys):
        result = OperationResult(action=Action.CANARY_ROLLBACK, outcome=Outcome.PARTIAL_ROLLBACK)

        OutputFormatter(format=OutputFormat.JSON, color=False).print_result(result)

        assert json.loads(capsys.readouterr().out)["outcome"] == "partial_rollback"


class TestPrintStatus:
    """Tests for rendering status results."""

    def _status(self, **details) -> OperationResult:
        return OperationResult(
            action=Action.STATUS,
            after={
                "service": "shop",
                "namespace": "prod",
                "active_color": "green",
                "canary_weight": 25,
                "promotion_stage": 2,
                "last_transition_time": "2026-01-01T11:00:00+00:00",
            },
            details=details,
        )

    def test_summary_and_deployments(self, capsys):
        result = self._status(
            live={"deployments": [{"target": "green", "name": "shop-green", "image": "shop:2.0"}]},
        )

        OutputFormatter(color=False).print_status(
            result, now=datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        )

        out = capsys.readouterr().out
        assert "prod/shop" in out
        assert "Active color:    green" in out
        assert "25% (stage 2)" in out
        assert "1.0h ago" in out
        assert "shop-green" in out

    def test_drift_and_errors(self, capsys):
        result = self._status(drift=["selector points at blue"], errors=["shop-canary: Not Found"])

        OutputFormatter(color=False).print_status(result)

        captured = capsys.readouterr()
        assert "Drift: selector points at blue" in captured.out
        assert "shop-canary: Not Found" in captured.err
