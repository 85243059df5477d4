"""Correlation-id context for extraction calls."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Read current correlation id from context var."""

    return correlation_id_var.get()


@contextmanager
def correlation_scope(corr_id: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of one extraction.

    An id already bound by the caller is kept so nested calls share it.
    """

    current = correlation_id_var.get()
    if current and corr_id is None:
        yield current
        return

    corr_id = corr_id or str(uuid4())
    token = correlation_id_var.set(corr_id)
    try:
        yield corr_id
    finally:
        correlation_id_var.reset(token)
