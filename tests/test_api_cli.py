from __future__ import annotations

import os

import pytest

from reportstudio.api_cli import apply_environment, build_parser

ENV_NAMES = ("REPORTSTUDIO_DB_PATH", "REPORTSTUDIO_SEED", "LOG_LEVEL", "LOG_FORMAT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so monkeypatch restores the original state afterwards.
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults_leave_environment_alone():
    args = build_parser().parse_args([])
    assert (args.host, args.port, args.reload) == ("127.0.0.1", 8000, False)
    apply_environment(args)
    assert not any(name in os.environ for name in ENV_NAMES)


def test_options_become_environment_overrides():
    args = build_parser().parse_args(
        ["--db", "/tmp/report.db", "--no-seed", "--log-level", "DEBUG", "--log-format", "console"]
    )
    apply_environment(args)
    assert os.environ["REPORTSTUDIO_DB_PATH"] == "/tmp/report.db"
    assert os.environ["REPORTSTUDIO_SEED"] == "false"
    assert os.environ["LOG_LEVEL"] == "DEBUG"
    assert os.environ["LOG_FORMAT"] == "console"


def test_rejects_unknown_log_format():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--log-format", "xml"])
