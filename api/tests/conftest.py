import itertools
import os
from io import BytesIO
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from docdesigner.main import app  # noqa: E402
from docdesigner import db as db_module  # noqa: E402
from docdesigner.db import get_session  # noqa: E402
from docdesigner import storage as storage_module  # noqa: E402
from docdesigner import template_service  # noqa: E402
from docdesigner.routers import documents as documents_router  # noqa: E402
from docdesigner.utils import make_token  # noqa: E402


def make_pdf(pages: int = 1) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def mock_storage(monkeypatch) -> Dict[str, bytes]:
    store: Dict[str, bytes] = {}
    counter = itertools.count(1)

    def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    def fake_get_bytes(key: str) -> bytes:
        if key not in store:
            raise KeyError(key)
        return store[key]

    def fake_delete_object(key: str):
        store.pop(key, None)

    def fake_presigned_url(key: str, ttl_seconds: int) -> str:
        return f"https://storage.test/{key}?expires={ttl_seconds}&sig={next(counter)}"

    for target in (storage_module, documents_router, template_service):
        if hasattr(target, "put_bytes"):
            monkeypatch.setattr(target, "put_bytes", fake_put_bytes)
        if hasattr(target, "get_bytes"):
            monkeypatch.setattr(target, "get_bytes", fake_get_bytes)
        if hasattr(target, "delete_object"):
            monkeypatch.setattr(target, "delete_object", fake_delete_object)
        if hasattr(target, "presigned_url"):
            monkeypatch.setattr(target, "presigned_url", fake_presigned_url)
    return store


@pytest.fixture
def session_factory(test_engine, setup_db):
    return lambda: Session(test_engine)


@pytest.fixture
def auth_headers():
    return {"X-Session-Token": make_token({"user_id": "user-1"})}


@pytest.fixture
def client(test_engine, setup_db, mock_storage):
    db_module.engine = test_engine

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
