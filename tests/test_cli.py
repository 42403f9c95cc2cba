import os

import httpx
import pytest

from delivery_boy.cli import run

from conftest import HOOK_A, WebhookRecorder


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite://{tmp_path / 'db' / 'entries.db'}")
    monkeypatch.setenv("DISCORD_WEBHOOK_URL", HOOK_A)
    monkeypatch.setenv("KEY", "s3cret")
    monkeypatch.setenv("LOG_FORMAT", "text")
    # Leave the root logger to pytest.
    monkeypatch.setattr(run, "setup_logging", lambda level, fmt: None)
    return tmp_path


def test_init_db_creates_database(env):
    assert run.main(["init-db"]) == 0
    assert os.path.exists(env / "db" / "entries.db")


def test_missing_configuration_exits_non_zero(env, monkeypatch):
    monkeypatch.delenv("KEY")
    assert run.main(["init-db"]) == 2


def test_trigger_sends_digest_once(env, monkeypatch):
    recorder = WebhookRecorder()
    monkeypatch.setattr(run, "create_client", lambda timeout: recorder.client())

    assert run.main(["trigger"]) == 0
    assert [str(r.url) for r in recorder.posts()] == [HOOK_A]


def test_trigger_reports_delivery_failure(env, monkeypatch):
    recorder = WebhookRecorder()
    recorder.missing.add(HOOK_A)
    monkeypatch.setattr(run, "create_client", lambda timeout: recorder.client())

    assert run.main(["trigger"]) == 1
    assert recorder.posts() == []


def test_build_scheduler_registers_weekly_digest(env):
    config = run.load_config()
    ctx = run.build_context(config)

    scheduler = run.build_scheduler(config, ctx)

    assert [job.name for job in scheduler.jobs] == ["weekly-digest"]
    assert scheduler.jobs[0].weekday == config.schedule_weekday
    assert isinstance(ctx.dispatcher.client, httpx.AsyncClient)


def test_cli_overrides(env):
    args = run.build_parser().parse_args(["run", "--port", "9999", "--log-level", "debug"])
    config, level = run._apply_overrides(run.load_config(), args)
    assert config.PORT == 9999
    assert level == "debug"
