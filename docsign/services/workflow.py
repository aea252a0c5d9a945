"""Document lifecycle: role-gated status transitions with an audit trail.

Every public operation is one transaction. Guards run before the first write
in this order: the document exists (``NotFound``), the actor holds a required
role (``Forbidden``), the status allows the transition (``InvalidState``).
Role assignments and task log entries are flushed through ``RoleStore`` and
``AuditLog`` and committed together with the document change.

    draft ──assign editor──▶ editing ──complete/submit──▶ ready_for_review
                                ▲                          │          │
                                │                       approve    reject
                       assign editor (any status)          ▼          ▼
                                                       completed   rejected
"""

import copy
import logging
from datetime import datetime, timezone

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docsign.errors import Forbidden, InvalidState, NotFound
from docsign.models.document import (
    Document,
    DocumentRole,
    DocumentStatus,
    TaskLog,
    TaskRole,
    TaskStatus,
)
from docsign.models.person import Person
from docsign.schemas.document import HistoryEntry
from docsign.schemas.document_data import (
    DocumentData,
    blank_copy,
    table_specs_from_schema,
)
from docsign.services.audit import AuditLog
from docsign.services.common import coerce_uuid, require_actor
from docsign.services.people import People
from docsign.services.roles import RoleStore
from docsign.services.templates import Templates

logger = logging.getLogger(__name__)

_EDITOR_NAME = "Editor User"
_REVIEWER_NAME = "Reviewer User"
_UNASSIGNED = "unassigned"

_ACTIONS = {
    TaskStatus.pending: "TASK_ASSIGNED",
    TaskStatus.in_progress: "STATUS_CHANGED",
    TaskStatus.completed: "TASK_COMPLETED",
    TaskStatus.rejected: "TASK_REJECTED",
}


def _load_document(db: Session, document_id) -> Document:
    try:
        doc_uuid = coerce_uuid(document_id)
    except ValueError:
        raise NotFound("Document not found")
    document = db.get(Document, doc_uuid)
    if not document:
        raise NotFound("Document not found")
    return document


def _require_role(db: Session, document: Document, actor: Person, roles, action: str):
    if not RoleStore.has_role(db, document.id, actor.id, *roles):
        allowed = " or ".join(role.value for role in roles)
        raise Forbidden(f"Only the document {allowed} can {action}")


def _require_status(document: Document, expected: DocumentStatus, action: str):
    if document.status != expected:
        raise InvalidState(
            f"Cannot {action}: document is {document.status.value}, "
            f"expected {expected.value}"
        )


def _initial_data(field_schema: list) -> dict:
    return {
        "title": "",
        "content": "",
        "createdAt": datetime.now(timezone.utc).isoformat(),
        "coordinateFields": blank_copy(field_schema),
        "coordinateData": {},
        "signatures": {},
        "table init fields": table_specs_from_schema(field_schema),
        "table data": [],
    }


def _replace_data(document: Document, new_data: dict) -> None:
    # Single mutation point for the data blob. Last write wins; a version
    # check would go here.
    document.data = new_data


def _commit(db: Session, document: Document) -> Document:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Rolled back workflow change on document %s", document.id)
        raise
    db.refresh(document)
    return document


def _describe(entry: TaskLog, labels: dict[str, list[str]]) -> str:
    def who(person: Person) -> str:
        role = "/".join(labels.get(person.email, [])) or _UNASSIGNED
        return f"{person.name} ({role})"

    if entry.status == TaskStatus.pending:
        return f"{who(entry.assigned_by)} assigned a task to {who(entry.assigned_user)}"
    if entry.status == TaskStatus.completed:
        return f"{who(entry.assigned_user)} completed a task"
    if entry.status == TaskStatus.rejected:
        reason = f": {entry.rejection_reason}" if entry.rejection_reason else ""
        return f"{who(entry.assigned_user)} rejected a task{reason}"
    return f"{who(entry.assigned_user)} updated the document"


class DocumentWorkflow:
    @staticmethod
    def create_document(
        db: Session,
        template_id: str,
        creator: Person,
        editor_email: str | None = None,
        deadline: datetime | None = None,
    ) -> Document:
        require_actor(creator, "create a document")
        try:
            source = Templates.find_by_id(db, template_id)
        except ValueError:
            raise NotFound("Template not found")

        try:
            document = Document(
                template_id=coerce_uuid(template_id),
                data=_initial_data(source.field_schema),
                status=DocumentStatus.draft,
                deadline=deadline,
            )
            db.add(document)
            db.flush()

            RoleStore.assign(db, document.id, creator.id, TaskRole.creator)
            AuditLog.append(db, document.id, creator, creator, TaskStatus.completed)

            if editor_email and editor_email.strip():
                editor = People.find_or_create_by_email(db, editor_email, _EDITOR_NAME)
                RoleStore.assign(db, document.id, editor.id, TaskRole.editor)
                AuditLog.append(db, document.id, creator, editor, TaskStatus.pending)
                document.status = DocumentStatus.editing
        except (HTTPException, SQLAlchemyError):
            db.rollback()
            raise

        _commit(db, document)
        logger.info(
            "Created document %s from template %s (%s) by %s",
            document.id,
            template_id,
            document.status.value,
            creator.email,
        )
        return document

    @staticmethod
    def get(db: Session, document_id: str) -> Document:
        return _load_document(db, document_id)

    @staticmethod
    def list_for_person(db: Session, person_id: str) -> list[Document]:
        stmt = (
            select(Document)
            .join(DocumentRole, DocumentRole.document_id == Document.id)
            .where(DocumentRole.person_id == coerce_uuid(person_id))
            .order_by(Document.created_at.desc())
            .distinct()
        )
        return db.scalars(stmt).all()

    @staticmethod
    def roles(db: Session, document_id: str) -> list[DocumentRole]:
        document = _load_document(db, document_id)
        return RoleStore.list_for_document(db, document.id)

    @staticmethod
    def assign_editor(
        db: Session, document_id: str, email: str, actor: Person
    ) -> Document:
        require_actor(actor, "assign an editor")
        document = _load_document(db, document_id)
        _require_role(db, document, actor, (TaskRole.creator,), "assign an editor")

        try:
            editor = People.find_or_create_by_email(db, email, _EDITOR_NAME)
            RoleStore.assign(db, document.id, editor.id, TaskRole.editor)
            AuditLog.append(db, document.id, actor, editor, TaskStatus.pending)
            previous = document.status
            document.status = DocumentStatus.editing
        except (HTTPException, SQLAlchemyError):
            db.rollback()
            raise

        _commit(db, document)
        logger.info(
            "Assigned editor %s to document %s (%s -> editing)",
            editor.email,
            document.id,
            previous.value,
        )
        return document

    @staticmethod
    def assign_reviewer(
        db: Session, document_id: str, email: str, actor: Person
    ) -> Document:
        require_actor(actor, "assign a reviewer")
        document = _load_document(db, document_id)
        _require_role(
            db,
            document,
            actor,
            (TaskRole.creator, TaskRole.editor),
            "assign a reviewer",
        )

        try:
            reviewer = People.find_or_create_by_email(db, email, _REVIEWER_NAME)
            RoleStore.assign(db, document.id, reviewer.id, TaskRole.reviewer)
            AuditLog.append(db, document.id, actor, reviewer, TaskStatus.pending)
        except (HTTPException, SQLAlchemyError):
            db.rollback()
            raise

        _commit(db, document)
        logger.info("Assigned reviewer %s to document %s", reviewer.email, document.id)
        return document

    @staticmethod
    def update_data(
        db: Session, document_id: str, new_data: dict, actor: Person
    ) -> Document:
        require_actor(actor, "edit a document")
        document = _load_document(db, document_id)
        _require_role(
            db,
            document,
            actor,
            (TaskRole.creator, TaskRole.editor),
            "edit the document",
        )
        try:
            blob = DocumentData.from_blob(new_data).to_blob()
        except ValidationError as exc:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid document data: {exc.error_count()} error(s)",
            )

        try:
            _replace_data(document, blob)
            AuditLog.append(db, document.id, actor, actor, TaskStatus.in_progress)
        except SQLAlchemyError:
            db.rollback()
            raise

        _commit(db, document)
        logger.info("Updated data of document %s by %s", document.id, actor.email)
        return document

    @staticmethod
    def complete_editing(db: Session, document_id: str, actor: Person) -> Document:
        return DocumentWorkflow._finish_editing(db, document_id, actor, "complete editing")

    @staticmethod
    def submit_for_review(db: Session, document_id: str, actor: Person) -> Document:
        return DocumentWorkflow._finish_editing(
            db, document_id, actor, "submit for review"
        )

    @staticmethod
    def _finish_editing(db: Session, document_id: str, actor: Person, action: str):
        require_actor(actor, action)
        document = _load_document(db, document_id)
        _require_role(db, document, actor, (TaskRole.creator, TaskRole.editor), action)
        _require_status(document, DocumentStatus.editing, action)

        try:
            document.status = DocumentStatus.ready_for_review
            AuditLog.append(db, document.id, actor, actor, TaskStatus.completed)
        except SQLAlchemyError:
            db.rollback()
            raise

        _commit(db, document)
        logger.info("Document %s ready for review (%s)", document.id, actor.email)
        return document

    @staticmethod
    def approve(
        db: Session, document_id: str, actor: Person, signature: str | None
    ) -> Document:
        require_actor(actor, "approve a document")
        document = _load_document(db, document_id)
        _require_role(db, document, actor, (TaskRole.reviewer,), "approve it")
        _require_status(document, DocumentStatus.ready_for_review, "approve")

        try:
            if signature:
                # JSON columns do not track in-place mutation
                data = copy.deepcopy(document.data or {})
                signatures = dict(data.get("signatures") or {})
                signatures[actor.email] = signature
                data["signatures"] = signatures
                _replace_data(document, data)
            document.status = DocumentStatus.completed
            AuditLog.append(db, document.id, actor, actor, TaskStatus.completed)
        except SQLAlchemyError:
            db.rollback()
            raise

        _commit(db, document)
        logger.info("Document %s approved by %s", document.id, actor.email)
        return document

    @staticmethod
    def reject(db: Session, document_id: str, actor: Person, reason: str | None) -> Document:
        require_actor(actor, "reject a document")
        document = _load_document(db, document_id)
        _require_role(db, document, actor, (TaskRole.reviewer,), "reject it")
        _require_status(document, DocumentStatus.ready_for_review, "reject")

        try:
            document.status = DocumentStatus.rejected
            AuditLog.append(
                db,
                document.id,
                actor,
                actor,
                TaskStatus.rejected,
                rejection_reason=reason,
            )
        except SQLAlchemyError:
            db.rollback()
            raise

        _commit(db, document)
        logger.info("Document %s rejected by %s: %s", document.id, actor.email, reason)
        return document

    @staticmethod
    def can_review(db: Session, document_id: str, person: Person | None) -> bool:
        try:
            if person is None:
                return False
            document = _load_document(db, document_id)
            return (
                RoleStore.has_role(db, document.id, person.id, TaskRole.reviewer)
                and document.status == DocumentStatus.ready_for_review
            )
        except Exception:
            logger.exception(
                "Error checking review permission for document %s", document_id
            )
            return False

    @staticmethod
    def history(db: Session, document_id: str, requester: Person) -> list[HistoryEntry]:
        require_actor(requester, "view document history")
        document = _load_document(db, document_id)
        if not AuditLog.exists_for_person(db, document.id, requester.email):
            logger.warning(
                "History access denied for document %s to %s",
                document.id,
                requester.email,
            )
            raise Forbidden("You do not have access to this document's history")

        entries = AuditLog.list_for_document(db, document.id)
        # Roles are resolved now, not as they were when each entry was written
        labels = RoleStore.role_labels(db, document.id)
        logger.info(
            "Loaded history for document %s: %d entries, %d role holders",
            document.id,
            len(entries),
            len(labels),
        )
        return [
            HistoryEntry(
                id=entry.id,
                sequence=entry.sequence,
                status=entry.status.value,
                action=_ACTIONS[entry.status],
                description=_describe(entry, labels),
                performed_by=entry.assigned_user.email,
                performed_by_name=entry.assigned_user.name,
                role="/".join(labels.get(entry.assigned_user.email, []))
                or _UNASSIGNED,
                rejection_reason=entry.rejection_reason,
                created_at=entry.created_at,
                completed_at=entry.completed_at,
            )
            for entry in entries
        ]


workflow = DocumentWorkflow()
