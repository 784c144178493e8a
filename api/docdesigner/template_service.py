"""
Loading and saving designer templates for stored documents.

Wires the template engine to its collaborators: MinIO for the PDF and the
saved template blob, the database for persisted fields and document status.
"""

import json
import logging
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional

from minio.error import S3Error
from pypdf import PdfReader
from sqlmodel import Session, select, delete

from .config import DOCUMENT_URL_TTL_SECONDS
from .engine.completion import evaluate_completion, signature_type_for
from .engine.converter import count_fields, to_schema
from .engine.resolver import ResolvedTemplate, TemplateSourceResolver
from .engine.signers import MULTI_SIGNATURE_TYPE
from .errors import DocumentNotFound, SaveRejected
from .models import Document, DocumentField
from .storage import delete_object, get_bytes, put_bytes, presigned_url
from .utils import canonical_json

logger = logging.getLogger(__name__)

TEMPLATE_VERSION = "1.0"


def count_pdf_pages(data: bytes) -> Optional[int]:
    try:
        return len(PdfReader(BytesIO(data)).pages)
    except Exception as exc:
        logger.warning("could not count PDF pages: %s", exc)
        return None


def template_key_for(owner_id: str, document_id: int) -> str:
    return f"templates/{owner_id}/{document_id}/template.json"


def get_document(session: Session, document_id: int, owner_id: Optional[str] = None) -> Document:
    document = session.get(Document, document_id)
    if not document or (owner_id is not None and document.owner_id != owner_id):
        raise DocumentNotFound(f"document {document_id} not found")
    return document


def get_document_reference(document: Document) -> str:
    # legacy rows may point at an external URL instead of an object key
    if document.s3_key.startswith(("http://", "https://")):
        return document.s3_key
    return presigned_url(document.s3_key, DOCUMENT_URL_TTL_SECONDS)


def get_saved_template(template_key: str) -> Optional[Dict[str, Any]]:
    try:
        data = get_bytes(template_key)
    except S3Error as exc:
        if exc.code == "NoSuchKey":
            return None
        raise
    return json.loads(data)


def put_template(template: Dict[str, Any], owner_id: str, document_id: int, metadata: Optional[Dict[str, Any]] = None) -> str:
    """Store the full template blob and return its key.

    ``basePdf`` is written as null; a fresh reference is issued on every load.
    """
    merged_metadata = dict(template.get("metadata") or {})
    # document-derived keys replace the copies carried over from the last load
    merged_metadata.update(metadata or {})
    merged_metadata.update(version=TEMPLATE_VERSION, saved_at=datetime.utcnow().isoformat() + "Z")
    signers = template.get("signers") or []
    blob = {
        "basePdf": None,
        "schemas": template.get("schemas") or [],
        "signers": signers,
        "multiSignature": signature_type_for(template) == MULTI_SIGNATURE_TYPE,
        "metadata": merged_metadata,
    }
    key = template_key_for(owner_id, document_id)
    put_bytes(key, json.dumps(blob, indent=2).encode(), content_type="application/json")
    return key


def _field_from_row(row: DocumentField) -> Dict[str, Any]:
    try:
        properties = json.loads(row.properties_json or "{}")
    except json.JSONDecodeError:
        logger.warning("field %s has unreadable properties, treating them as empty", row.field_id)
        properties = {}
    return {
        "id": row.field_id,
        "type": row.type,
        "name": row.name,
        "position": {"x": row.x, "y": row.y, "width": row.width, "height": row.height, "page": row.page},
        "properties": properties,
    }


def _row_from_field(document_id: int, index: int, field: Dict[str, Any]) -> DocumentField:
    position = field["position"]
    return DocumentField(
        field_id=field["id"],
        document_id=document_id,
        sort_index=index,
        type=field["type"],
        name=field.get("name"),
        page=position["page"],
        x=position["x"],
        y=position["y"],
        width=position["width"],
        height=position["height"],
        properties_json=canonical_json(field.get("properties") or {}),
    )


def fields_for_document(session: Session, document_id: int) -> List[Dict[str, Any]]:
    rows = session.exec(
        select(DocumentField).where(DocumentField.document_id == document_id).order_by(DocumentField.sort_index)
    ).all()
    return [_field_from_row(row) for row in rows]


def load_template(
    session: Session,
    document_id: int,
    owner_id: Optional[str] = None,
    resolver: Optional[TemplateSourceResolver] = None,
) -> ResolvedTemplate:
    document = get_document(session, document_id, owner_id)
    resolver = resolver or TemplateSourceResolver(lambda _doc_id: get_document_reference(document), get_saved_template)
    return resolver.resolve(
        document.id,
        fields_for_document(session, document.id),
        saved_template_ref=document.template_key,
        signature_type=document.signature_type,
        page_count=document.page_count,
    )


def delete_document(session: Session, document_id: int, owner_id: str) -> None:
    document = get_document(session, document_id, owner_id)
    keys = [key for key in (document.s3_key, document.template_key) if key and not key.startswith(("http://", "https://"))]
    session.exec(delete(DocumentField).where(DocumentField.document_id == document.id))
    session.delete(document)
    session.commit()
    for key in keys:
        try:
            delete_object(key)
        except S3Error as exc:
            logger.warning("document %s deleted but object %s was not removed: %s", document_id, key, exc)
    logger.info("document %s deleted", document_id)


def save_template(session: Session, document_id: int, template: Dict[str, Any], principal_id: str) -> Dict[str, Any]:
    """Persist a template read back from the designer.

    The caller has already verified ``principal_id``. The blob is written
    first; fields and document status are then committed together.
    """
    document = get_document(session, document_id, principal_id)
    reported = count_fields(template.get("schemas"))
    fields = to_schema(template)
    if reported and not fields:
        raise SaveRejected(f"designer reported {reported} field(s) for document {document_id} but none converted")

    signature_type = signature_type_for(template)
    template_ref = put_template(
        template,
        principal_id,
        document.id,
        metadata={
            "signature_type": signature_type,
            "title": document.filename,
            "is_multi_signature": signature_type == MULTI_SIGNATURE_TYPE,
        },
    )

    session.exec(delete(DocumentField).where(DocumentField.document_id == document.id))
    for index, field in enumerate(fields):
        session.add(_row_from_field(document.id, index, field))
    status, completion = evaluate_completion(fields, bool(document.s3_key), signature_type)
    document.template_key = template_ref
    document.signature_type = signature_type
    document.status = status
    document.completion_percentage = completion
    document.updated_at = datetime.utcnow()
    session.add(document)
    session.commit()
    logger.info("document %s saved with %d field(s), status %s (%d%%)", document.id, len(fields), status, completion)
    return {
        "fields": fields,
        "template_ref": template_ref,
        "status": status,
        "completion_percentage": completion,
    }
