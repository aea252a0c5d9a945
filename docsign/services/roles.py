import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from docsign.errors import InvalidState
from docsign.models.document import DocumentRole, TaskRole
from docsign.models.person import Person
from docsign.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class RoleStore:
    """Role assignments per document.

    Each document holds at most one row per role. Writes only flush; the
    workflow operation that calls in commits or rolls back as a unit.
    """

    @staticmethod
    def find_by_role(db: Session, document_id, role: TaskRole) -> DocumentRole | None:
        return db.scalar(
            select(DocumentRole).where(
                DocumentRole.document_id == coerce_uuid(document_id),
                DocumentRole.role == role,
            )
        )

    @staticmethod
    def find_by_person(db: Session, document_id, person_id) -> list[DocumentRole]:
        return db.scalars(
            select(DocumentRole).where(
                DocumentRole.document_id == coerce_uuid(document_id),
                DocumentRole.person_id == coerce_uuid(person_id),
            )
        ).all()

    @staticmethod
    def has_role(db: Session, document_id, person_id, *roles: TaskRole) -> bool:
        if person_id is None:
            return False
        stmt = select(DocumentRole.id).where(
            DocumentRole.document_id == coerce_uuid(document_id),
            DocumentRole.person_id == coerce_uuid(person_id),
        )
        if roles:
            stmt = stmt.where(DocumentRole.role.in_(roles))
        return db.scalar(stmt.limit(1)) is not None

    @staticmethod
    def list_for_document(db: Session, document_id) -> list[DocumentRole]:
        return db.scalars(
            select(DocumentRole)
            .where(DocumentRole.document_id == coerce_uuid(document_id))
            .order_by(DocumentRole.created_at.asc())
        ).all()

    @staticmethod
    def assign(db: Session, document_id, person_id, role: TaskRole) -> DocumentRole:
        doc_uuid = coerce_uuid(document_id)
        existing = RoleStore.find_by_role(db, doc_uuid, role)
        if existing is not None:
            if role == TaskRole.creator:
                raise InvalidState("Document already has a creator")
            db.delete(existing)
            # The delete must reach the database before the replacement row
            # or the (document, role) unique constraint trips.
            db.flush()
            logger.info(
                "Retired %s assignment %s on document %s",
                role.value,
                existing.id,
                doc_uuid,
            )
        assignment = DocumentRole(
            document_id=doc_uuid,
            person_id=coerce_uuid(person_id),
            role=role,
        )
        db.add(assignment)
        db.flush()
        logger.info(
            "Assigned %s on document %s to person %s",
            role.value,
            doc_uuid,
            person_id,
        )
        return assignment

    @staticmethod
    def role_labels(db: Session, document_id) -> dict[str, list[str]]:
        """Current roles keyed by person email."""
        rows = db.execute(
            select(Person.email, DocumentRole.role)
            .join(Person, Person.id == DocumentRole.person_id)
            .where(DocumentRole.document_id == coerce_uuid(document_id))
        ).all()
        labels: dict[str, list[str]] = {}
        for email, role in rows:
            labels.setdefault(email, []).append(role.value)
        order = [r.value for r in TaskRole]
        return {
            email: sorted(roles, key=order.index) for email, roles in labels.items()
        }


role_store = RoleStore()
