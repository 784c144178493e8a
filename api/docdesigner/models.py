
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field as ORMField

class Document(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    owner_id: str
    filename: str
    s3_key: str
    sha256: Optional[str] = None
    page_count: Optional[int] = None
    signature_type: str = "single"  # single|multi
    template_key: Optional[str] = None
    status: str = "draft"  # draft|ready
    completion_percentage: int = 0
    created_at: datetime = ORMField(default_factory=datetime.utcnow)
    updated_at: datetime = ORMField(default_factory=datetime.utcnow)

class DocumentField(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    field_id: str = ORMField(index=True)
    document_id: int = ORMField(index=True)
    sort_index: int = 0
    type: str  # text|multiVariableText|signature|dateTime|select|checkbox|radio|image|qr|barcode|line|rectangle|table
    name: Optional[str] = None
    page: int = 0
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 20.0
    properties_json: str = "{}"
