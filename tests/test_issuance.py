import itertools
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from io import BytesIO
from types import SimpleNamespace

import pytest
from PyPDF2 import PdfReader

from certclaim.shared.errors import (
    GateError,
    IssuanceFailed,
    NotFoundError,
    RenderError,
    StorageError,
    TemplateError,
    TemplateUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from certclaim.shared.issuance import certificate_filename, issue_certificate


class FakeStore:
    """In-memory record store with store-assigned ids."""

    def __init__(self, event=None, names=(), first_id=1):
        self.event = event
        self.whitelist = [SimpleNamespace(name=n) for n in names]
        self.certificates = {}
        self._ids = itertools.count(first_id)
        self._lock = threading.Lock()
        self.fail_delete = False

    def get_event(self, event_id):
        if self.event is not None and self.event.id == event_id:
            return self.event
        return None

    def list_whitelist(self, event_id):
        return list(self.whitelist)

    def create_certificate(self, event_id, name):
        with self._lock:
            cert = SimpleNamespace(id=next(self._ids), event_id=event_id, name=name, cert_no=None)
            self.certificates[cert.id] = cert
        return cert

    def set_certificate_number(self, certificate_id, number):
        self.certificates[certificate_id].cert_no = number

    def delete_certificate(self, certificate_id):
        if self.fail_delete:
            raise StorageError("database went away")
        self.certificates.pop(certificate_id, None)


class FakeBlobs:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.fetched = []

    def fetch_bytes(self, location):
        self.fetched.append(location)
        if self.error:
            raise self.error
        return self.data


def _event(**overrides):
    values = dict(
        id=7,
        cert_prefix="WS/2026",
        is_active=True,
        expiry_date=None,
        template_url="https://files.example.com/ws.pdf",
        name_x=50.0,
        name_y=45.0,
        cert_x=50.0,
        cert_y=60.0,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_issue_scenario_numbers_from_reserved_id(app, pdf_factory):
    store = FakeStore(_event(), names=["Budi Santoso"], first_id=42)
    blobs = FakeBlobs(pdf_factory())

    issued = issue_certificate(7, "Budi Santoso", store=store, blobs=blobs)

    assert issued.cert_no == "042/WS/2026"
    assert issued.certificate_id == 42
    assert issued.filename == "Sertifikat-Budi_Santoso.pdf"
    assert store.certificates[42].cert_no == "042/WS/2026"
    assert store.certificates[42].name == "Budi Santoso"
    assert blobs.fetched == ["https://files.example.com/ws.pdf"]
    text = PdfReader(BytesIO(issued.pdf_bytes)).pages[0].extract_text()
    assert "042/WS/2026" in text


def test_name_snapshot_is_trimmed_submitted_name(app, pdf_factory):
    store = FakeStore(_event(), names=["Budi Santoso"])
    issue_certificate("7", "  budi   santoso ", store=store, blobs=FakeBlobs(pdf_factory()))
    (cert,) = store.certificates.values()
    assert cert.name == "budi   santoso"


@pytest.mark.parametrize(
    "event_id, name",
    [(7, ""), (7, "   "), (None, "Budi Santoso"), ("", "Budi Santoso"), ("abc", "Budi")],
)
def test_missing_input_is_validation_error(app, event_id, name):
    store = FakeStore(_event(), names=["Budi Santoso"])
    with pytest.raises(ValidationError):
        issue_certificate(event_id, name, store=store, blobs=FakeBlobs())
    assert store.certificates == {}


def test_unknown_event_is_not_found(app):
    store = FakeStore(_event(), names=["Budi Santoso"])
    with pytest.raises(NotFoundError):
        issue_certificate(99, "Budi Santoso", store=store, blobs=FakeBlobs())
    assert store.certificates == {}


@pytest.mark.parametrize("name", ["Budi Santoso", "Somebody Else"])
def test_inactive_event_always_fails_inactive(app, name):
    store = FakeStore(_event(is_active=False), names=["Budi Santoso"])
    with pytest.raises(GateError) as exc:
        issue_certificate(7, name, store=store, blobs=FakeBlobs())
    assert exc.value.reason == "inactive"
    assert store.certificates == {}


def test_expired_event_fails_without_creating_a_record(app):
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).replace(tzinfo=None)
    store = FakeStore(_event(expiry_date=yesterday), names=["Budi Santoso"])
    with pytest.raises(GateError) as exc:
        issue_certificate(7, "Budi Santoso", store=store, blobs=FakeBlobs())
    assert exc.value.reason == "expired"
    assert store.certificates == {}


def test_future_expiry_allows_issuance(app, pdf_factory):
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(tzinfo=None)
    store = FakeStore(_event(expiry_date=tomorrow), names=["Budi Santoso"])
    issued = issue_certificate(7, "Budi Santoso", store=store, blobs=FakeBlobs(pdf_factory()))
    assert issued.cert_no == "001/WS/2026"


def test_unlisted_name_is_unauthorized(app):
    store = FakeStore(_event(), names=["Budi Santoso"])
    with pytest.raises(UnauthorizedError):
        issue_certificate(7, "Budi Santosoo", store=store, blobs=FakeBlobs())
    assert store.certificates == {}


def test_template_fetch_failure_deletes_reservation(app):
    store = FakeStore(_event(), names=["Budi Santoso"])
    blobs = FakeBlobs(error=TemplateUnavailableError("Template PDF not found."))
    with pytest.raises(IssuanceFailed) as exc:
        issue_certificate(7, "Budi Santoso", store=store, blobs=blobs)
    assert isinstance(exc.value.cause, TemplateUnavailableError)
    assert exc.value.status_code == 404
    assert store.certificates == {}


def test_render_failure_deletes_reservation(app):
    store = FakeStore(_event(), names=["Budi Santoso"])
    with pytest.raises(IssuanceFailed) as exc:
        issue_certificate(7, "Budi Santoso", store=store, blobs=FakeBlobs(b"garbage"))
    assert isinstance(exc.value.cause, TemplateError)
    assert exc.value.status_code == 500
    assert store.certificates == {}


def test_unexpected_render_exception_still_cleans_up(app, pdf_factory, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr("certclaim.shared.issuance.render_overlay", boom)
    store = FakeStore(_event(), names=["Budi Santoso"])
    with pytest.raises(IssuanceFailed) as exc:
        issue_certificate(7, "Budi Santoso", store=store, blobs=FakeBlobs(pdf_factory()))
    assert isinstance(exc.value.__cause__, RuntimeError)
    assert exc.value.reason == RenderError.reason
    assert store.certificates == {}


def test_failed_cleanup_is_logged_and_original_error_kept(app, caplog):
    caplog.set_level("ERROR")
    store = FakeStore(_event(), names=["Budi Santoso"])
    store.fail_delete = True
    with pytest.raises(IssuanceFailed) as exc:
        issue_certificate(7, "Budi Santoso", store=store, blobs=FakeBlobs(b"garbage"))
    assert isinstance(exc.value.cause, TemplateError)
    assert "could not delete orphan certificate id=1" in caplog.text


def test_reservation_storage_failure_is_fatal(app):
    class BrokenStore(FakeStore):
        def create_certificate(self, event_id, name):
            raise StorageError("Could not reserve certificate.")

    store = BrokenStore(_event(), names=["Budi Santoso"])
    blobs = FakeBlobs()
    with pytest.raises(StorageError):
        issue_certificate(7, "Budi Santoso", store=store, blobs=blobs)
    assert blobs.fetched == []


def test_sequential_numbers_are_distinct(app, pdf_factory):
    store = FakeStore(_event(), names=["Budi Santoso", "Siti Aminah"])
    blobs = FakeBlobs(pdf_factory())
    numbers = [
        issue_certificate(7, name, store=store, blobs=blobs).cert_no
        for name in ["Budi Santoso", "Siti Aminah", "Budi Santoso"]
    ]
    assert numbers == ["001/WS/2026", "002/WS/2026", "003/WS/2026"]


def test_concurrent_claims_get_distinct_numbers(app, pdf_factory):
    store = FakeStore(_event(), names=["Budi Santoso"])
    blobs = FakeBlobs(pdf_factory())

    def claim(_):
        with app.app_context():
            return issue_certificate(7, "Budi Santoso", store=store, blobs=blobs).cert_no

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(claim, range(24)))

    assert len(set(numbers)) == 24
    assert all(c.cert_no for c in store.certificates.values())


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Budi Santoso", "Sertifikat-Budi_Santoso.pdf"),
        ("  Jane   Q. Doe ", "Sertifikat-Jane_Q._Doe.pdf"),
        ("../../etc/passwd", "Sertifikat-etc_passwd.pdf"),
    ],
)
def test_certificate_filename_is_sanitized(name, expected):
    assert certificate_filename(name) == expected
