import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docsign.db import Base


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DocumentStatus(enum.Enum):
    draft = "draft"
    editing = "editing"
    ready_for_review = "ready_for_review"
    reviewing = "reviewing"
    completed = "completed"
    rejected = "rejected"


class TaskRole(enum.Enum):
    creator = "creator"
    editor = "editor"
    reviewer = "reviewer"


class TaskStatus(enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    rejected = "rejected"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class Template(Base):
    __tablename__ = "templates"
    __table_args__ = (Index("ix_templates_created_by", "created_by"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    pdf_file_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    pdf_image_path: Mapped[str | None] = mapped_column(String(1024))
    # Ordered list of field descriptors, see schemas.document_data
    field_schema: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    creator = relationship("Person", foreign_keys=[created_by])
    documents = relationship("Document", back_populates="template")


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_template_id", "template_id"),
        Index("ix_documents_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("templates.id"), nullable=False
    )
    # Owned working copy: title, content, coordinateFields, coordinateData,
    # signatures, "table init fields", "table data"
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.draft
    )
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    template = relationship("Template", back_populates="documents")
    roles = relationship("DocumentRole", back_populates="document")
    task_logs = relationship(
        "TaskLog",
        back_populates="document",
        order_by="TaskLog.sequence",
    )


# ---------------------------------------------------------------------------
# Role assignments, one row per (document, role)
# ---------------------------------------------------------------------------


class DocumentRole(Base):
    __tablename__ = "document_roles"
    __table_args__ = (
        UniqueConstraint("document_id", "role", name="uq_document_roles_doc_role"),
        Index("ix_document_roles_person_id", "person_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    person_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    role: Mapped[TaskRole] = mapped_column(Enum(TaskRole), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    document = relationship("Document", back_populates="roles")
    person = relationship("Person", foreign_keys=[person_id])


# ---------------------------------------------------------------------------
# Task log (immutable, no updated_at)
# ---------------------------------------------------------------------------


class TaskLog(Base):
    __tablename__ = "task_logs"
    __table_args__ = (
        Index("ix_task_logs_document_id_sequence", "document_id", "sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    # Ordering tiebreak only; concurrent appends may share a value
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    assigned_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("people.id"), nullable=False
    )
    status: Mapped[TaskStatus] = mapped_column(Enum(TaskStatus), nullable=False)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # No updated_at: immutable record

    document = relationship("Document", back_populates="task_logs")
    assigned_by = relationship("Person", foreign_keys=[assigned_by_id])
    assigned_user = relationship("Person", foreign_keys=[assigned_user_id])
