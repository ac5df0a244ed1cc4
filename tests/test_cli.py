# tests/test_cli.py
import pytest

from altosync.cli import main
from altosync.locking import exclusive_lock
from altosync.scheduler import start_scheduler


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("IMAGE_BASE_PATH", str(tmp_path / "images"))
    monkeypatch.setenv("ALTO_TOKEN_FILE", str(tmp_path / "tokens.json"))
    monkeypatch.setenv("RESIZE_LOCK_FILE", str(tmp_path / ".resize_images.lock"))
    monkeypatch.setenv("ALTO_API_USERNAME", "")
    monkeypatch.setenv("ALTO_API_PASSWORD", "")
    return tmp_path


def test_usage_error_exits_with_2():
    with pytest.raises(SystemExit) as exc:
        main(["reconcile-photos"])
    assert exc.value.code == 2


def test_reset_pending_only(env, capsys):
    assert main(["reset", "--pending-only"]) == 0
    assert "marked pending" in capsys.readouterr().out


def test_reconcile_on_empty_tree(env, capsys):
    assert main(["reconcile-photos", "--all", "--dry-run"]) == 0
    assert "properties=0 added=0" in capsys.readouterr().out


def test_backfill_while_locked_is_not_an_error(env, capsys):
    with exclusive_lock(str(env / ".resize_images.lock")):
        assert main(["backfill-images", "--all"]) == 0
    assert "Another backfill is running" in capsys.readouterr().out


def test_token_without_credentials_fails(env):
    assert main(["token"]) == 1


def test_scheduler_registers_single_interval_job():
    class Stub:
        def run(self):
            pass

    scheduler = start_scheduler(Stub(), hours=2)
    try:
        job = scheduler.get_job("alto-sync")
        assert job is not None
        assert job.max_instances == 1
    finally:
        scheduler.shutdown(wait=False)
