import pytest

from app.workers.tasks import overdue_terminations as task_module


def test_task_publishes_sweep_counts(monkeypatch: pytest.MonkeyPatch):
    published = []

    async def _fake_run_sweep():
        return {"checked": 3, "promoted": 1, "notified": 2, "failed": 0}

    monkeypatch.setattr(task_module, "_run_sweep", _fake_run_sweep)
    monkeypatch.setattr(task_module, "publish_task_complete", lambda **kwargs: published.append(kwargs))

    result = task_module.check_overdue_terminations()

    assert result == {"status": "success", "checked": 3, "promoted": 1, "notified": 2, "failed": 0}
    assert published[0]["channel"] == "terminations"
    assert published[0]["task_type"] == "overdue_terminations"
    assert published[0]["result"]["promoted"] == 1


def test_task_failure_publishes_error(monkeypatch: pytest.MonkeyPatch):
    errors = []

    async def _failing_run_sweep():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(task_module, "_run_sweep", _failing_run_sweep)
    monkeypatch.setattr(task_module, "publish_task_error", lambda **kwargs: errors.append(kwargs))

    with pytest.raises(RuntimeError, match="database unavailable"):
        task_module.check_overdue_terminations()

    assert errors[0]["error"] == "database unavailable"
