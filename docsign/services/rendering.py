import logging
import os

from sqlalchemy.orm import Session

from docsign.config import settings
from docsign.errors import Forbidden, IOFailure
from docsign.models.person import Person
from docsign.schemas.document import RenderResult
from docsign.services import compositor
from docsign.services.common import require_actor
from docsign.services.roles import RoleStore
from docsign.services.storage import ArtifactStorage
from docsign.services.templates import Templates
from docsign.services.workflow import DocumentWorkflow

logger = logging.getLogger(__name__)


def resolve_template_path(pdf_file_path: str) -> str:
    """Template paths are stored as given at upload; bare names live in TEMPLATE_DIR."""
    if os.path.isabs(pdf_file_path) or os.path.exists(pdf_file_path):
        return pdf_file_path
    return os.path.join(settings.template_dir, os.path.basename(pdf_file_path))


def _read_template(pdf_file_path: str) -> bytes:
    path = resolve_template_path(pdf_file_path)
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError as exc:
        logger.error("Template PDF %s could not be read: %s", path, exc)
        raise IOFailure(f"Template PDF could not be read: {path}") from exc


def _write_output(path: str, content: bytes) -> None:
    try:
        with open(path, "wb") as handle:
            handle.write(content)
    except OSError as exc:
        logger.error("Completed PDF %s could not be written: %s", path, exc)
        raise IOFailure(f"Completed PDF could not be written: {path}") from exc


def render_document(db: Session, document_id: str, requester: Person) -> RenderResult:
    """Render a document's current data onto its template and store the PDF.

    Any role holder may render, whatever the document status.
    """
    require_actor(requester, "render a document")
    document = DocumentWorkflow.get(db, document_id)
    if not RoleStore.has_role(db, document.id, requester.id):
        raise Forbidden("Only people assigned to the document can render it")

    source = Templates.find_by_id(db, document.template_id)
    data = document.data or {}
    field_schema = data.get("coordinateFields") or source.field_schema

    template_bytes = _read_template(source.pdf_file_path)
    content = compositor.render(template_bytes, field_schema, data)

    file_name = ArtifactStorage.output_file_name()
    try:
        path = ArtifactStorage.output_path(file_name)
    except OSError as exc:
        raise IOFailure(f"Output directory is not writable: {settings.output_dir}") from exc
    _write_output(path, content)
    logger.info("Rendered document %s to %s", document.id, path)

    storage_key = None
    download_url = None
    if ArtifactStorage.is_configured():
        storage_key = ArtifactStorage.generate_storage_key(str(document.id), file_name)
        ArtifactStorage.upload(storage_key, content)
        download_url = ArtifactStorage.generate_download_url(storage_key)

    return RenderResult(
        document_id=document.id,
        file_name=file_name,
        path=path,
        storage_key=storage_key,
        download_url=download_url,
    )
