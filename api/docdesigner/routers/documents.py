from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, Response
from sqlmodel import Session, select
from minio.error import S3Error
from ..db import get_session
from ..models import Document
from ..storage import put_bytes, get_bytes
from ..utils import sha256_bytes
from ..auth import SessionContext, require_session
from ..errors import DocumentNotFound
from ..template_service import count_pdf_pages, delete_document, fields_for_document, get_document

router = APIRouter()

def _owned_document(session: Session, document_id: int, ctx: SessionContext) -> Document:
    try:
        return get_document(session, document_id, ctx.user_id)
    except DocumentNotFound:
        raise HTTPException(404, "document not found")

@router.post("")
async def upload_document(
    file: UploadFile = File(...),
    signature_type: str = "single",
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    if signature_type not in ("single", "multi"):
        raise HTTPException(400, "signature_type must be single or multi")
    data = await file.read()
    doc = Document(
        owner_id=ctx.user_id,
        filename=file.filename,
        sha256=sha256_bytes(data),
        page_count=count_pdf_pages(data),
        signature_type=signature_type,
        s3_key="pending",
    )
    session.add(doc)
    session.flush()
    key = f"documents/{ctx.user_id}/{doc.id}-{file.filename}"
    put_bytes(key, data, content_type=file.content_type or "application/pdf")
    doc.s3_key = key
    session.add(doc)
    session.commit()
    session.refresh(doc)
    return doc

@router.get("")
def list_documents(
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    return session.exec(
        select(Document).where(Document.owner_id == ctx.user_id).order_by(Document.created_at.desc())
    ).all()

@router.get("/{document_id}")
def read_document(
    document_id: int,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    return _owned_document(session, document_id, ctx)

@router.get("/{document_id}/pdf")
def download_document_pdf(
    document_id: int,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    document = _owned_document(session, document_id, ctx)
    try:
        pdf_bytes = get_bytes(document.s3_key)
    except S3Error:
        raise HTTPException(404, "stored file missing for this document")
    filename = document.filename or f"document-{document_id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.get("/{document_id}/fields")
def list_document_fields(
    document_id: int,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    document = _owned_document(session, document_id, ctx)
    return fields_for_document(session, document.id)

@router.delete("/{document_id}", status_code=204)
def remove_document(
    document_id: int,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    try:
        delete_document(session, document_id, ctx.user_id)
    except DocumentNotFound:
        raise HTTPException(404, "document not found")
    return Response(status_code=204)
