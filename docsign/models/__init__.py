from docsign.models.person import Person  # noqa: F401
from docsign.models.document import (  # noqa: F401
    Document,
    DocumentRole,
    DocumentStatus,
    TaskLog,
    TaskRole,
    TaskStatus,
    Template,
)
