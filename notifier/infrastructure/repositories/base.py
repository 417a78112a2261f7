"""Shared plumbing for SQLAlchemy backed repositories."""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any, TypeVar

import anyio

from notifier.infrastructure.database import Database

T = TypeVar("T")


class SqlAlchemyRepository:
    """Run blocking session work on a worker thread.

    Each operation opens its own session through the injected
    :class:`Database` handle, so concurrent coroutines never share one.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def _run(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await anyio.to_thread.run_sync(functools.partial(operation, *args, **kwargs))


__all__ = ["SqlAlchemyRepository"]
