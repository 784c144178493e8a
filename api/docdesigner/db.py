
import logging
from sqlmodel import SQLModel, create_engine, Session
from sqlalchemy import text, inspect
from .config import DATABASE_URL

logger = logging.getLogger(__name__)

engine = create_engine(DATABASE_URL, echo=False, pool_pre_ping=True)

# columns added after the first deployments of the document table
DOCUMENT_LATE_COLUMNS = {
    "page_count": "INTEGER",
    "template_key": "TEXT",
    "status": "TEXT DEFAULT 'draft'",
    "completion_percentage": "INTEGER DEFAULT 0",
}

def init_db():
    from .models import Document, DocumentField
    SQLModel.metadata.create_all(engine)
    _ensure_columns("document", DOCUMENT_LATE_COLUMNS)

def get_session():
    with Session(engine) as session:
        yield session

def _ensure_columns(table: str, wanted: dict):
    try:
        existing = {col["name"] for col in inspect(engine).get_columns(table)}
    except Exception:
        return
    missing = [name for name in wanted if name not in existing]
    if not missing:
        return
    with engine.begin() as conn:
        for name in missing:
            logger.info("adding column %s.%s", table, name)
            conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {wanted[name]}"))
