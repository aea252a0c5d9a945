import uuid

import pytest
from fastapi import HTTPException

from docsign.models.document import Document, DocumentStatus, Template, TaskRole
from docsign.models.person import Person
from docsign.services.roles import RoleStore


def _make_person(db_session, prefix="role"):
    p = Person(name=prefix.title(), email=f"{prefix}-{uuid.uuid4().hex[:8]}@test.com")
    db_session.add(p)
    db_session.commit()
    db_session.refresh(p)
    return p


def _make_document(db_session, person):
    template = Template(
        name=f"tpl_{uuid.uuid4().hex[:8]}",
        pdf_file_path="contract.pdf",
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


class TestRoleStoreAssign:
    def test_assign_and_find(self, db_session, person):
        doc = _make_document(db_session, person)
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.creator)
        db_session.commit()
        found = RoleStore.find_by_role(db_session, doc.id, TaskRole.creator)
        assert found.person_id == person.id
        assert RoleStore.has_role(db_session, doc.id, person.id, TaskRole.creator)

    def test_reassign_replaces_holder(self, db_session, person):
        doc = _make_document(db_session, person)
        first = _make_person(db_session, "editor-a")
        second = _make_person(db_session, "editor-b")
        RoleStore.assign(db_session, doc.id, first.id, TaskRole.editor)
        RoleStore.assign(db_session, doc.id, second.id, TaskRole.editor)
        db_session.commit()

        rows = [
            r
            for r in RoleStore.list_for_document(db_session, doc.id)
            if r.role == TaskRole.editor
        ]
        assert len(rows) == 1
        assert rows[0].person_id == second.id
        assert not RoleStore.has_role(db_session, doc.id, first.id)

    def test_second_creator_rejected(self, db_session, person):
        doc = _make_document(db_session, person)
        other = _make_person(db_session, "other")
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.creator)
        with pytest.raises(HTTPException) as exc:
            RoleStore.assign(db_session, doc.id, other.id, TaskRole.creator)
        assert exc.value.status_code == 409

    def test_person_may_hold_several_roles(self, db_session, person):
        doc = _make_document(db_session, person)
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.creator)
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.editor)
        db_session.commit()
        roles = RoleStore.find_by_person(db_session, doc.id, person.id)
        assert {r.role for r in roles} == {TaskRole.creator, TaskRole.editor}


class TestRoleStoreQueries:
    def test_has_role_without_assignment(self, db_session, person):
        doc = _make_document(db_session, person)
        assert RoleStore.has_role(db_session, doc.id, person.id) is False
        assert RoleStore.has_role(db_session, doc.id, None) is False

    def test_has_role_filters_by_role(self, db_session, person):
        doc = _make_document(db_session, person)
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.editor)
        db_session.commit()
        assert RoleStore.has_role(db_session, doc.id, person.id, TaskRole.editor)
        assert not RoleStore.has_role(db_session, doc.id, person.id, TaskRole.reviewer)

    def test_role_labels_sorted_by_role_order(self, db_session, person):
        doc = _make_document(db_session, person)
        reviewer = _make_person(db_session, "reviewer")
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.editor)
        RoleStore.assign(db_session, doc.id, person.id, TaskRole.creator)
        RoleStore.assign(db_session, doc.id, reviewer.id, TaskRole.reviewer)
        db_session.commit()

        labels = RoleStore.role_labels(db_session, doc.id)
        assert labels[person.email] == ["creator", "editor"]
        assert labels[reviewer.email] == ["reviewer"]

    def test_roles_are_scoped_to_document(self, db_session, person):
        doc_a = _make_document(db_session, person)
        doc_b = _make_document(db_session, person)
        RoleStore.assign(db_session, doc_a.id, person.id, TaskRole.creator)
        db_session.commit()
        assert RoleStore.find_by_role(db_session, doc_b.id, TaskRole.creator) is None
