"""
Persistence of evacuation status rows.

Rows are keyed by (list_id, list_item_id) and only ever upserted. An upsert
replaces every non-key column of a conflicting row in one statement, so a
row is never left half-written by two racing writers.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.db import SessionLocal
from ..core.errors import EvacuationError, ManualOverrideError, log_exception
from ..models.evacuation_status import EvacuationStatus
from ..schemas.evacuation import StatusRecord
from .evacuation_reconciler import apply_manual_override

logger = logging.getLogger("evacuation_store")

KEY_COLUMNS = ("list_id", "list_item_id")
VALUE_COLUMNS = (
    "enter_stream_ids",
    "exit_stream_ids",
    "status",
    "entrance_time",
    "exit_time",
    "manually_updated",
)
UPSERT_CHUNK_SIZE = 100


def now_ms() -> int:
    return int(time.time() * 1000)


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise EvacuationError(f"Upsert is not supported on dialect {dialect!r}")
    return insert


def upsert_records(db: Session, records: Sequence[StatusRecord], *, replace: bool = True) -> int:
    """
    Write rows inside the caller's transaction.

    With ``replace=False`` a conflicting row is left alone, which lets a row
    created concurrently by a manual override win over a computed insert.
    """
    if not records:
        return 0
    insert = _dialect_insert(db)
    rows = [record.as_row() for record in records]
    for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
        chunk = rows[start : start + UPSERT_CHUNK_SIZE]
        stmt = insert(EvacuationStatus).values(chunk)
        if replace:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(KEY_COLUMNS),
                set_={name: stmt.excluded[name] for name in VALUE_COLUMNS},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(KEY_COLUMNS))
        db.execute(stmt)
    return len(rows)


class EvacuationStatusStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    def upsert_all(self, records: Iterable[StatusRecord]) -> int:
        records = list(records)
        with self._session_factory() as db, db.begin():
            return upsert_records(db, records)

    def find_by_list(self, list_id: int) -> List[StatusRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(EvacuationStatus)
                .where(EvacuationStatus.list_id == list_id)
                .order_by(EvacuationStatus.list_item_id.asc())
            ).scalars()
            return [StatusRecord.model_validate(row) for row in rows]

    def find_page_by_list(self, list_id: int, offset: int, limit: int) -> Tuple[int, List[StatusRecord]]:
        with self._session_factory() as db:
            total = db.execute(
                select(func.count()).select_from(EvacuationStatus).where(EvacuationStatus.list_id == list_id)
            ).scalar_one()
            rows = db.execute(
                select(EvacuationStatus)
                .where(EvacuationStatus.list_id == list_id)
                .order_by(EvacuationStatus.list_item_id.asc())
                .offset(offset)
                .limit(limit)
            ).scalars()
            return total, [StatusRecord.model_validate(row) for row in rows]

    def find_active_by_list(self, list_id: int) -> List[StatusRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(EvacuationStatus)
                .where(EvacuationStatus.list_id == list_id, EvacuationStatus.status.is_(True))
                .order_by(EvacuationStatus.list_item_id.asc())
            ).scalars()
            return [StatusRecord.model_validate(row) for row in rows]

    def get(self, list_id: int, list_item_id: int) -> Optional[StatusRecord]:
        with self._session_factory() as db:
            row = db.get(EvacuationStatus, (list_id, list_item_id))
            return StatusRecord.model_validate(row) if row is not None else None

    def exists(self, list_id: int, list_item_id: int) -> bool:
        return self.get(list_id, list_item_id) is not None

    def reconcile_list(
        self,
        list_id: int,
        compute: Callable[[Dict[int, StatusRecord]], Sequence[StatusRecord]],
    ) -> List[StatusRecord]:
        """
        Read the list's rows, compute new rows from them and write the result
        in one transaction.

        Existing rows are locked (``FOR UPDATE`` on PostgreSQL) so the manual
        override check sees persisted state as of the write.
        """
        with self._session_factory() as db, db.begin():
            rows = db.execute(
                select(EvacuationStatus)
                .where(EvacuationStatus.list_id == list_id)
                .order_by(EvacuationStatus.list_item_id.asc())
                .with_for_update()
            ).scalars()
            existing = {row.list_item_id: StatusRecord.model_validate(row) for row in rows}
            records = list(compute(existing))
            updates = [r for r in records if r.list_item_id in existing]
            inserts = [r for r in records if r.list_item_id not in existing]
            upsert_records(db, updates, replace=True)
            upsert_records(db, inserts, replace=False)
        return records

    def set_manual_status(
        self,
        list_id: int,
        list_item_id: int,
        status: bool,
        effective_time_ms: Optional[int] = None,
    ) -> StatusRecord:
        return self.set_manual_statuses(list_id, {list_item_id: status}, effective_time_ms)[0]

    def set_manual_statuses(
        self,
        list_id: int,
        statuses: Mapping[int, bool],
        effective_time_ms: Optional[int] = None,
    ) -> List[StatusRecord]:
        """Apply human corrections; failures are raised to the caller."""
        effective = now_ms() if effective_time_ms is None else effective_time_ms
        try:
            with self._session_factory() as db, db.begin():
                records: List[StatusRecord] = []
                for list_item_id, status in sorted(statuses.items()):
                    row = db.get(EvacuationStatus, (list_id, list_item_id), with_for_update=True)
                    existing = StatusRecord.model_validate(row) if row is not None else None
                    records.append(
                        apply_manual_override(list_id, list_item_id, bool(status), effective, existing)
                    )
                upsert_records(db, records)
        except (SQLAlchemyError, EvacuationError) as exc:
            raise ManualOverrideError(
                f"Failed to set manual status for list_id={list_id} items={sorted(statuses)}: {exc}"
            ) from exc
        logger.info(
            "Manual status set list_id=%s items=%s effective_time=%s", list_id, len(records), effective
        )
        return records

    def active_person_ids(self, list_id: int) -> Set[int]:
        try:
            return {record.list_item_id for record in self.find_active_by_list(list_id)}
        except SQLAlchemyError as exc:
            log_exception(logger, "Active status query failed", extra={"list_id": list_id}, exc=exc)
            return set()

    def active_statuses(self, list_id: int) -> Dict[int, StatusRecord]:
        try:
            return {record.list_item_id: record for record in self.find_active_by_list(list_id)}
        except SQLAlchemyError as exc:
            log_exception(logger, "Active status query failed", extra={"list_id": list_id}, exc=exc)
            return {}
