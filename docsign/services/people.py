import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from docsign.errors import NotFound
from docsign.models.person import Person
from docsign.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class People:
    @staticmethod
    def get(db: Session, person_id: str) -> Person:
        person = db.get(Person, coerce_uuid(person_id))
        if not person:
            raise NotFound("Person not found")
        return person

    @staticmethod
    def find_by_email(db: Session, email: str) -> Person | None:
        return db.scalar(select(Person).where(Person.email == _normalize_email(email)))

    @staticmethod
    def find_or_create_by_email(db: Session, email: str, default_name: str) -> Person:
        """Resolve a person by email, creating a placeholder account if needed.

        Flushes but never commits; the calling workflow operation owns the
        transaction.
        """
        normalized = _normalize_email(email)
        if not normalized:
            raise HTTPException(status_code=400, detail="Email is required")
        person = db.scalar(select(Person).where(Person.email == normalized))
        if person:
            return person
        person = Person(name=default_name, email=normalized)
        db.add(person)
        db.flush()
        logger.info("Created person %s for %s", person.id, normalized)
        return person


people = People()
