from __future__ import annotations

from unittest.mock import patch

from rentflow.workers.sweeper import sweep_expired_contracts_task


class _FakeScalars:
    def all(self):
        return []


class _FakeResult:
    def scalars(self):
        return _FakeScalars()


class _FakeBegin:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None


class _FakeSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    def begin(self):
        return _FakeBegin()

    async def execute(self, *_args, **_kwargs):
        return _FakeResult()


def test_sweep_task_runs_without_errors_with_empty_db():
    def _fake_async_session():
        return _FakeSession()

    with patch("rentflow.db.async_session", new=_fake_async_session):
        assert sweep_expired_contracts_task() == 0


def test_sweep_task_is_scheduled_on_beat():
    from rentflow.workers.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["sweep-expired-contracts"]
    assert entry["task"] == "rentflow.sweep_expired_contracts"
    assert entry["schedule"] == 3600.0
