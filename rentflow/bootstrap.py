from __future__ import annotations

from rentflow.config import get_settings
from rentflow.core.engine import ContractLifecycleEngine
from rentflow.core.sql_stores import SqlTransactionManager
from rentflow.core.terms import ContractPolicy
from rentflow.integrations.notifier import WebhookNotifier


def build_engine(session_factory=None) -> ContractLifecycleEngine:
    """Wire the lifecycle engine to the database and the notification webhook from settings."""
    if session_factory is None:
        from rentflow.db import async_session

        session_factory = async_session

    settings = get_settings()
    return ContractLifecycleEngine(
        SqlTransactionManager(session_factory),
        policy=ContractPolicy.from_settings(settings),
        dispatcher=WebhookNotifier.from_settings(settings),
    )
