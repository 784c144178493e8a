
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional

class FieldPosition(BaseModel):
    x: float = 0
    y: float = 0
    width: float = 100
    height: float = 20
    page: int = 0

class FieldRecord(BaseModel):
    id: str
    type: str
    name: Optional[str] = None
    position: FieldPosition
    properties: Dict[str, Any] = {}

class SignerInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    email: str = ""
    role: str = ""
    color: Optional[str] = None

class TemplatePayload(BaseModel):
    # widget-native; unknown keys are kept for round-tripping
    model_config = ConfigDict(extra="allow")

    basePdf: Optional[Any] = None
    schemas: List[List[Dict[str, Any]]] = []
    signers: Optional[List[SignerInfo]] = None
    multiSignature: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None

class TemplateLoadResponse(BaseModel):
    template: Dict[str, Any]
    source: str

class TemplateSaveResponse(BaseModel):
    fields: List[FieldRecord]
    template_ref: str
    status: str
    completion_percentage: int
