"""Audit trail written from ORM flush events.

Every INSERT, UPDATE and DELETE flushed through a session appends one
``audit_log`` row in the same transaction. ``modified_by`` is taken from the
authenticated user bound for the current request. Bulk UPDATE and DELETE
statements are recorded once per statement without a row id.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any

from sqlalchemy import event, inspect, insert
from sqlalchemy.orm import ORMExecuteState, Session

from vapor.db.base import utcnow
from vapor.db.models import AuditLog

current_actor: ContextVar[str | None] = ContextVar("current_actor", default=None)

_registered = False


def set_actor(actor: str | None) -> None:
    """Bind the actor recorded on audit rows for the current context."""
    current_actor.set(actor)


def _row_id(obj: Any) -> str | None:
    # identity keys of new objects are assigned after after_flush runs
    key = inspect(obj).mapper.primary_key_from_instance(obj)
    if any(part is None for part in key):
        return None
    return ",".join(str(part) for part in key)


def _collect(session: Session) -> list[dict[str, Any]]:
    now = utcnow()
    actor = current_actor.get()
    rows: list[dict[str, Any]] = []
    changes = (
        ("INSERT", session.new),
        ("UPDATE", [obj for obj in session.dirty if session.is_modified(obj)]),
        ("DELETE", session.deleted),
    )
    for operation, objects in changes:
        for obj in objects:
            if isinstance(obj, AuditLog):
                continue
            rows.append({
                "table_name": obj.__tablename__,
                "operation_type": operation,
                "row_id": _row_id(obj),
                "operation_timestamp": now,
                "modified_by": actor,
            })
    return rows


def _after_flush(session: Session, _flush_context: Any) -> None:  # noqa: ANN401
    rows = _collect(session)
    if rows:
        session.connection().execute(insert(AuditLog), rows)


def _on_bulk_statement(state: ORMExecuteState) -> None:
    # Bulk UPDATE/DELETE bypass the unit of work, so log one row per statement.
    if not (state.is_update or state.is_delete) or state.bind_mapper is None:
        return
    table = state.bind_mapper.local_table.name
    if table == AuditLog.__tablename__:
        return
    state.session.connection().execute(
        insert(AuditLog),
        [{
            "table_name": table,
            "operation_type": "UPDATE" if state.is_update else "DELETE",
            "row_id": None,
            "operation_timestamp": utcnow(),
            "modified_by": current_actor.get(),
        }],
    )


def register_audit_listeners() -> None:
    """Attach the audit listeners to every ORM session (idempotent)."""
    global _registered  # noqa: PLW0603
    if _registered:
        return
    event.listen(Session, "after_flush", _after_flush)
    event.listen(Session, "do_orm_execute", _on_bulk_statement)
    _registered = True
