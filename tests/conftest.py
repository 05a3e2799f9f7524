import os
import pathlib
import sys
from io import BytesIO

import pytest
from reportlab.pdfgen import canvas

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certclaim.app import create_app, db
from certclaim.models import Event, WhitelistEntry


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


def build_pdf(width=600, height=800, pages=1, label="TEMPLATE") -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=(width, height))
    for index in range(pages):
        c.setFont("Helvetica", 12)
        c.drawString(20, 20, f"{label} page {index + 1}")
        c.showPage()
    c.save()
    return buffer.getvalue()


@pytest.fixture
def app(tmp_path):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ["SITE_ROOT"] = str(tmp_path)
    os.environ["TEMPLATE_ROOT"] = str(tmp_path / "templates")
    application = create_app()
    application.config["TESTING"] = True
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def template_file(app):
    """Write a 600x800 single-page template under TEMPLATE_ROOT."""

    def _write(filename="template.pdf", **kwargs) -> str:
        root = pathlib.Path(app.config["TEMPLATE_ROOT"])
        root.mkdir(parents=True, exist_ok=True)
        (root / filename).write_bytes(build_pdf(**kwargs))
        return filename

    return _write


@pytest.fixture
def make_event(app, template_file):
    def _make(names=("Budi Santoso",), **fields) -> Event:
        values = {
            "event_name": "Workshop 2026",
            "cert_prefix": "WS/2026",
            "is_active": True,
            "expiry_date": None,
            "name_x": 50.0,
            "name_y": 45.0,
            "cert_x": 50.0,
            "cert_y": 60.0,
        }
        values.update(fields)
        if "template_url" not in values:
            values["template_url"] = template_file()
        event = Event(**values)
        db.session.add(event)
        db.session.flush()
        for name in names:
            db.session.add(WhitelistEntry(event_id=event.id, name=name))
        db.session.commit()
        return event

    return _make


@pytest.fixture
def pdf_factory():
    return build_pdf
