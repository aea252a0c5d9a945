import uuid
from unittest.mock import patch

from docsign.models.document import Document, DocumentStatus, Template, TaskStatus
from docsign.models.person import Person
from docsign.services.audit import AuditLog


def _make_person(db_session, prefix="audit"):
    p = Person(name=prefix.title(), email=f"{prefix}-{uuid.uuid4().hex[:8]}@test.com")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


def _make_document(db_session, person):
    template = Template(
        name="Audit template",
        pdf_file_path="audit.pdf",
        field_schema=[],
        created_by=person.id,
    )
    db_session.add(template)
    db_session.flush()
    doc = Document(template_id=template.id, data={}, status=DocumentStatus.draft)
    db_session.add(doc)
    db_session.commit()
    db_session.refresh(doc)
    return doc


class TestAuditLogAppend:
    def test_sequence_increments_per_document(self, db_session, person):
        doc = _make_document(db_session, person)
        other = _make_document(db_session, person)
        first = AuditLog.append(db_session, doc.id, person, person, TaskStatus.completed)
        second = AuditLog.append(db_session, doc.id, person, person, TaskStatus.pending)
        elsewhere = AuditLog.append(
            db_session, other.id, person, person, TaskStatus.pending
        )
        db_session.commit()
        assert (first.sequence, second.sequence) == (1, 2)
        assert elsewhere.sequence == 1

    def test_completed_at_only_for_terminal_status(self, db_session, person):
        doc = _make_document(db_session, person)
        pending = AuditLog.append(db_session, doc.id, person, person, TaskStatus.pending)
        done = AuditLog.append(db_session, doc.id, person, person, TaskStatus.completed)
        rejected = AuditLog.append(
            db_session,
            doc.id,
            person,
            person,
            TaskStatus.rejected,
            rejection_reason="typo",
        )
        db_session.commit()
        assert pending.completed_at is None
        assert done.completed_at is not None
        assert rejected.completed_at is not None
        assert rejected.rejection_reason == "typo"

    def test_count_grows_by_one(self, db_session, person):
        doc = _make_document(db_session, person)
        assert AuditLog.count(db_session, doc.id) == 0
        AuditLog.append(db_session, doc.id, person, person, TaskStatus.in_progress)
        db_session.commit()
        assert AuditLog.count(db_session, doc.id) == 1


class TestAuditLogQueries:
    def test_list_newest_first(self, db_session, person):
        doc = _make_document(db_session, person)
        for status in (TaskStatus.completed, TaskStatus.pending, TaskStatus.in_progress):
            AuditLog.append(db_session, doc.id, person, person, status)
        db_session.commit()
        entries = AuditLog.list_for_document(db_session, doc.id)
        assert [e.sequence for e in entries] == [3, 2, 1]

    def test_exists_for_person(self, db_session, person):
        doc = _make_document(db_session, person)
        stranger = _make_person(db_session, "stranger")
        assignee = _make_person(db_session, "assignee")
        AuditLog.append(db_session, doc.id, person, assignee, TaskStatus.pending)
        db_session.commit()
        assert AuditLog.exists_for_person(db_session, doc.id, assignee.email)
        assert not AuditLog.exists_for_person(db_session, doc.id, stranger.email)
        # the assigner is not the subject of the entry
        assert not AuditLog.exists_for_person(db_session, doc.id, person.email)

    def test_shared_sequence_is_accepted(self, db_session, person):
        doc = _make_document(db_session, person)
        AuditLog.append(db_session, doc.id, person, person, TaskStatus.completed)
        db_session.commit()
        with patch.object(AuditLog, "_next_sequence", return_value=1):
            duplicate = AuditLog.append(
                db_session, doc.id, person, person, TaskStatus.in_progress
            )
        db_session.commit()
        assert duplicate.sequence == 1
        entries = AuditLog.list_for_document(db_session, doc.id)
        assert len(entries) == 2
        assert entries[0].id == duplicate.id
