"""
Shared fixtures: PDF and image factories, stores under tmp_path, and an API
client with the storage DI helpers overridden.
"""
import base64
import io
from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from pypdf import PdfReader
from reportlab.pdfgen import canvas

from foliosign.adapters.json import JsonAdapter
from foliosign.adapters.local import LocalBlobStore
from foliosign.adapters.sqlite import SqliteAdapter
from foliosign.core.documents import DocumentService
from foliosign.core.signing import SigningService
from foliosign.main import (
    app,
    get_blob_store,
    get_document_service,
    get_metadata_store,
    get_signing_service,
)

LETTER = (612, 792)


# ---------- factories ----------

def make_pdf(pages: int = 3, size: Tuple[float, float] = LETTER) -> bytes:
    """Text-only PDF (no images), one label per page."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=size)
    for i in range(pages):
        c.drawString(72, size[1] - 72, f"Page {i + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def make_png(width: int = 200, height: int = 80, color=(0, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(width: int = 200, height: int = 80, color=(0, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


def data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


# ---------- PDF inspection ----------

def _mul(m, n):
    a, b, c, d, e, f = m
    a2, b2, c2, d2, e2, f2 = n
    return (
        a * a2 + b * c2,
        a * b2 + b * d2,
        c * a2 + d * c2,
        c * b2 + d * d2,
        e * a2 + f * c2 + e2,
        e * b2 + f * d2 + f2,
    )


def image_rects(pdf_bytes: bytes, page_index: int) -> List[Tuple[float, float, float, float]]:
    """
    (x, y, width, height) in page space of every image XObject painted on
    the page, found by tracking the CTM through q/Q/cm in the content stream.
    """
    page = PdfReader(io.BytesIO(pdf_bytes)).pages[page_index]
    resources = page["/Resources"] if "/Resources" in page else {}
    xobjects = resources["/XObject"] if "/XObject" in resources else {}
    image_names = {
        name for name, obj in xobjects.items()
        if obj.get_object().get("/Subtype") == "/Image"
    }

    contents = page.get_contents()
    if contents is None:
        return []

    ctm = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
    stack = []
    rects = []
    for operands, operator in contents.operations:
        if isinstance(operator, bytes):
            operator = operator.decode("latin-1")
        if operator == "q":
            stack.append(ctm)
        elif operator == "Q":
            ctm = stack.pop() if stack else (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)
        elif operator == "cm":
            ctm = _mul(tuple(float(v) for v in operands), ctm)
        elif operator == "Do" and operands and operands[0] in image_names:
            a, _, _, d, e, f = ctm
            rects.append((e, f, a, d))
    return rects


def page_count(pdf_bytes: bytes) -> int:
    return len(PdfReader(io.BytesIO(pdf_bytes)).pages)


# ---------- fixtures ----------

@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf(3)


@pytest.fixture
def png_uri() -> str:
    return data_uri(make_png())


@pytest.fixture
def metadata(tmp_path):
    store = SqliteAdapter.from_url(f"sqlite:///{tmp_path / 'foliosign.db'}")
    yield store
    store.engine.dispose()


@pytest.fixture
def json_metadata(tmp_path):
    return JsonAdapter(str(tmp_path / "json"))


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), base_url="http://testserver", secret="test-secret")


@pytest.fixture
def document_service(metadata, blobs):
    return DocumentService(metadata, blobs, max_upload_bytes=10 * 1024 * 1024)


@pytest.fixture
def signing_service(metadata, blobs):
    return SigningService(metadata, blobs)


@pytest.fixture
def stored_doc(metadata, blobs, pdf_bytes):
    """A 3-page guest document already in both stores."""
    key = "guest/contract_1700000000000.pdf"
    blobs.put(key, pdf_bytes)
    return metadata.create_document(name="contract.pdf", storage_key=key, owner_id=None)


@pytest.fixture
def client(metadata, blobs, document_service, signing_service):
    app.dependency_overrides[get_metadata_store] = lambda: metadata
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_document_service] = lambda: document_service
    app.dependency_overrides[get_signing_service] = lambda: signing_service
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
