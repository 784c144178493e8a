from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from ..db import get_session
from ..schemas import TemplateLoadResponse, TemplatePayload, TemplateSaveResponse
from ..auth import SessionContext, require_session
from ..errors import DocumentNotFound, ReferenceExpiredOrUnavailable, SaveRejected
from .. import template_service

router = APIRouter()

@router.get("/{document_id}/template", response_model=TemplateLoadResponse)
def load_document_template(
    document_id: int,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    try:
        resolved = template_service.load_template(session, document_id, owner_id=ctx.user_id)
    except DocumentNotFound:
        raise HTTPException(404, "document not found")
    except ReferenceExpiredOrUnavailable as exc:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"document unavailable: {exc}")
    return {"template": resolved.template, "source": resolved.source}

@router.put("/{document_id}/template", response_model=TemplateSaveResponse)
def save_document_template(
    document_id: int,
    payload: TemplatePayload,
    session: Session = Depends(get_session),
    ctx: SessionContext = Depends(require_session),
):
    template = {key: value for key, value in payload.model_dump().items() if value is not None}
    try:
        return template_service.save_template(session, document_id, template, ctx.user_id)
    except DocumentNotFound:
        raise HTTPException(404, "document not found")
    except SaveRejected as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))
