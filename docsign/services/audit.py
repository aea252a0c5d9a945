import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from docsign.models.document import TaskLog, TaskStatus
from docsign.models.person import Person
from docsign.services.common import coerce_uuid

logger = logging.getLogger(__name__)

_TERMINAL = {TaskStatus.completed, TaskStatus.rejected}


class AuditLog:
    """Append-only task log per document. Entries are never updated or deleted."""

    @staticmethod
    def append(
        db: Session,
        document_id,
        assigned_by: Person,
        assigned_user: Person,
        status: TaskStatus,
        rejection_reason: str | None = None,
    ) -> TaskLog:
        doc_uuid = coerce_uuid(document_id)
        next_sequence = AuditLog._next_sequence(db, doc_uuid)
        now = datetime.now(timezone.utc)
        entry = TaskLog(
            document_id=doc_uuid,
            sequence=next_sequence,
            assigned_by_id=assigned_by.id,
            assigned_user_id=assigned_user.id,
            status=status,
            rejection_reason=rejection_reason,
            created_at=now,
            completed_at=now if status in _TERMINAL else None,
        )
        db.add(entry)
        db.flush()
        logger.info(
            "Logged %s task #%d on document %s for %s",
            status.value,
            next_sequence,
            doc_uuid,
            assigned_user.email,
        )
        return entry

    @staticmethod
    def _next_sequence(db: Session, doc_uuid) -> int:
        # Not serialized across sessions; two writers can read the same max
        current = db.scalar(
            select(func.max(TaskLog.sequence)).where(TaskLog.document_id == doc_uuid)
        )
        return (current or 0) + 1

    @staticmethod
    def list_for_document(db: Session, document_id) -> list[TaskLog]:
        return db.scalars(
            select(TaskLog)
            .where(TaskLog.document_id == coerce_uuid(document_id))
            .order_by(
                TaskLog.created_at.desc(), TaskLog.sequence.desc(), TaskLog.id.desc()
            )
        ).all()

    @staticmethod
    def exists_for_person(db: Session, document_id, email: str) -> bool:
        stmt = (
            select(TaskLog.id)
            .join(Person, Person.id == TaskLog.assigned_user_id)
            .where(
                TaskLog.document_id == coerce_uuid(document_id),
                Person.email == email,
            )
            .limit(1)
        )
        return db.scalar(stmt) is not None

    @staticmethod
    def count(db: Session, document_id) -> int:
        return db.scalar(
            select(func.count(TaskLog.id)).where(
                TaskLog.document_id == coerce_uuid(document_id)
            )
        )


audit_log = AuditLog()
