"""Translate SQLAlchemy failures into the merge error taxonomy.

Nothing outside this adapter inspects SQLAlchemy exception types.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from entityfold.domain.errors import TransactionError

if TYPE_CHECKING:
    from collections.abc import Iterator


def describe_storage_error(exc: SQLAlchemyError) -> str:
    if isinstance(exc, IntegrityError):
        return f"Integrity constraint violated: {_origin(exc)}"
    if isinstance(exc, OperationalError):
        if _is_timeout(exc):
            return f"Database statement timed out: {_origin(exc)}"
        return f"Can't reach database server or operation aborted: {_origin(exc)}"
    if isinstance(exc, InterfaceError):
        return f"Database interface error: {_origin(exc)}"
    return f"{type(exc).__name__}: {exc}"


def to_transaction_error(exc: SQLAlchemyError) -> TransactionError:
    return TransactionError(describe_storage_error(exc))


@contextmanager
def translate_storage_errors() -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise to_transaction_error(exc) from exc


def _origin(exc: SQLAlchemyError) -> str:
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip()
    return str(exc).strip()


def _is_timeout(exc: OperationalError) -> bool:
    text = _origin(exc).lower()
    return "statement timeout" in text or "canceling statement" in text or "lock wait" in text
