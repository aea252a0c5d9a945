import logging

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from docsign.errors import Forbidden, InvalidState, NotFound
from docsign.models.document import Document, Template
from docsign.models.person import Person
from docsign.schemas.document_data import parse_field_schema
from docsign.schemas.template import TemplateCreate, TemplateSource, TemplateUpdate
from docsign.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    require_actor,
)

logger = logging.getLogger(__name__)


def _validated_schema(raw_fields: list[dict]) -> list[dict]:
    try:
        fields = parse_field_schema(raw_fields)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid field schema: {exc.error_count()} error(s)",
        )
    return [field.model_dump(by_alias=True) for field in fields]


class Templates:
    @staticmethod
    def create(db: Session, payload: TemplateCreate, creator: Person) -> Template:
        require_actor(creator, "create a template")
        data = payload.model_dump()
        data["field_schema"] = _validated_schema(data["field_schema"])
        template = Template(**data, created_by=creator.id)
        db.add(template)
        db.commit()
        db.refresh(template)
        logger.info("Created template %s by %s", template.id, creator.email)
        return template

    @staticmethod
    def get(db: Session, template_id: str) -> Template:
        template = db.get(Template, coerce_uuid(template_id))
        if not template:
            raise NotFound("Template not found")
        return template

    @staticmethod
    def find_by_id(db: Session, template_id: str) -> TemplateSource:
        template = Templates.get(db, template_id)
        return TemplateSource(
            name=template.name,
            pdf_file_path=template.pdf_file_path,
            field_schema=list(template.field_schema or []),
        )

    @staticmethod
    def list(
        db: Session,
        created_by: str | None,
        is_public: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[Template]:
        stmt = select(Template)
        if created_by is not None:
            stmt = stmt.where(Template.created_by == coerce_uuid(created_by))
        if is_public is not None:
            stmt = stmt.where(Template.is_public == is_public)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "created_at": Template.created_at,
                "updated_at": Template.updated_at,
                "name": Template.name,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session, template_id: str, payload: TemplateUpdate, actor: Person
    ) -> Template:
        require_actor(actor, "update a template")
        template = Templates.get(db, template_id)
        if template.created_by != actor.id:
            raise Forbidden("Only the template creator can update it")

        data = payload.model_dump(exclude_unset=True)
        if data.get("field_schema") is not None:
            data["field_schema"] = _validated_schema(data["field_schema"])
        for key, value in data.items():
            setattr(template, key, value)
        db.commit()
        db.refresh(template)
        logger.info("Updated template %s", template.id)
        return template

    @staticmethod
    def delete(db: Session, template_id: str, actor: Person) -> None:
        require_actor(actor, "delete a template")
        template = Templates.get(db, template_id)
        if template.created_by != actor.id:
            raise Forbidden("Only the template creator can delete it")
        in_use = db.scalar(
            select(func.count(Document.id)).where(Document.template_id == template.id)
        )
        if in_use:
            raise InvalidState(
                f"Template is referenced by {in_use} document(s) and cannot be deleted"
            )
        db.delete(template)
        db.commit()
        logger.info("Deleted template %s", template_id)


templates = Templates()
