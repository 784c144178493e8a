import asyncio
import copy
import json

import pytest
from sqlmodel import select

from docdesigner.designer import DesignerSession
from docdesigner.engine.reconcile import ReconcileState, ReconciliationSupervisor
from docdesigner.engine.resolver import SOURCE_EMPTY, SOURCE_FLAT_FIELDS
from docdesigner.errors import AuthenticationInvalid
from docdesigner.models import Document, DocumentField


class StubWidget:
    def __init__(self):
        self.current = None
        self.save_callback = None

    def construct(self, container, template, plugins, options):
        self.current = copy.deepcopy(template)

    def replace(self, template):
        self.current = copy.deepcopy(template)

    def read(self):
        return copy.deepcopy(self.current)

    def on_save(self, callback):
        self.save_callback = callback


async def no_sleep(delay):
    return None


@pytest.fixture
def document(session_factory, mock_storage):
    with session_factory() as session:
        doc = Document(owner_id="user-1", filename="deal.pdf", s3_key="documents/user-1/deal.pdf", page_count=2)
        session.add(doc)
        session.commit()
        session.refresh(doc)
        return doc


def add_signature_fields(session_factory, document_id):
    with session_factory() as session:
        for index, signer in enumerate(("buyer", "seller")):
            session.add(
                DocumentField(
                    field_id=f"sig-{signer}",
                    document_id=document_id,
                    sort_index=index,
                    type="signature",
                    name=f"{signer}_signature",
                    page=index,
                    x=50,
                    y=600,
                    width=150,
                    height=40,
                    properties_json=json.dumps({"signerId": signer}),
                )
            )
        session.commit()


def make_designer(document, session_factory, verify_session=lambda: "user-1"):
    widget = StubWidget()
    supervisor = ReconciliationSupervisor(widget, sleep=no_sleep)
    return DesignerSession(document.id, widget, session_factory, verify_session, supervisor=supervisor)


def test_load_without_fields_starts_empty(document, session_factory):
    designer = make_designer(document, session_factory)
    template = asyncio.run(designer.load_template("container"))

    assert designer.source == SOURCE_EMPTY
    assert template["schemas"] == [[], []]
    assert template["basePdf"].startswith("https://storage.test/documents/user-1/deal.pdf")
    assert designer.outcome.state == ReconcileState.CONVERGED


def test_load_rebuilds_from_fields_and_hands_widget_signers(document, session_factory):
    add_signature_fields(session_factory, document.id)
    designer = make_designer(document, session_factory)
    template = asyncio.run(designer.load_template())

    assert designer.source == SOURCE_FLAT_FIELDS
    assert [len(page) for page in template["schemas"]] == [1, 1]
    assert [s["id"] for s in template["signers"]] == ["buyer", "seller"]
    assert designer.widget.read()["multiSignature"] is True


def test_save_restores_signers_missing_from_widget(document, session_factory, mock_storage):
    add_signature_fields(session_factory, document.id)
    designer = make_designer(document, session_factory)
    asyncio.run(designer.load_template())

    read_back = designer.widget.read()
    read_back["signers"] = []
    read_back["multiSignature"] = False
    result = asyncio.run(designer.save_template(read_back))

    assert result["status"] == "ready"
    assert result["completion_percentage"] == 100
    blob = json.loads(mock_storage[result["template_ref"]])
    assert blob["basePdf"] is None
    assert [s["id"] for s in blob["signers"]] == ["buyer", "seller"]
    assert blob["multiSignature"] is True
    assert blob["metadata"]["signature_type"] == "multi"

    with session_factory() as session:
        saved = session.get(Document, document.id)
        assert saved.signature_type == "multi"
        assert saved.template_key == result["template_ref"]


def test_save_reads_widget_when_no_template_given(document, session_factory):
    designer = make_designer(document, session_factory)
    asyncio.run(designer.load_template())
    designer.widget.current["schemas"][0].append(
        {"id": "t1", "name": "buyer_name", "type": "text", "content": "Buyer", "position": {"x": 10, "y": 10}, "width": 100, "height": 20}
    )
    result = asyncio.run(designer.save_template())

    assert [f["id"] for f in result["fields"]] == ["t1"]
    assert result["status"] == "draft"
    assert result["completion_percentage"] == 75


def test_save_with_invalid_session_writes_nothing(document, session_factory, mock_storage):
    add_signature_fields(session_factory, document.id)

    def expired():
        raise RuntimeError("token expired")

    designer = make_designer(document, session_factory, verify_session=expired)
    asyncio.run(designer.load_template())
    with pytest.raises(AuthenticationInvalid):
        asyncio.run(designer.save_template({"schemas": [[]]}))

    assert not any(key.startswith("templates/") for key in mock_storage)
    with session_factory() as session:
        rows = session.exec(select(DocumentField).where(DocumentField.document_id == document.id)).all()
        assert len(rows) == 2


def test_widget_save_callback_persists(document, session_factory, mock_storage):
    designer = make_designer(document, session_factory)

    async def scenario():
        await designer.load_template()
        template = designer.widget.read()
        template["schemas"][1].append({"name": "sig", "type": "signature", "position": {"x": 1, "y": 1}, "width": 80, "height": 30})
        designer.widget.save_callback(template)
        await asyncio.gather(*list(designer._save_tasks))

    asyncio.run(scenario())
    with session_factory() as session:
        rows = session.exec(select(DocumentField).where(DocumentField.document_id == document.id)).all()
        assert [(row.type, row.page) for row in rows] == [("signature", 1)]


def test_close_disposes_supervisor_and_ignores_late_saves(document, session_factory, mock_storage):
    designer = make_designer(document, session_factory)

    async def scenario():
        await designer.load_template()
        designer.close()
        designer.widget.save_callback(designer.widget.read())

    asyncio.run(scenario())
    assert designer.closed
    assert designer.supervisor.disposed
    assert not any(key.startswith("templates/") for key in mock_storage)
