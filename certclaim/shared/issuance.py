"""Certificate issuance: validate, reserve, number, render.

A certificate row is reserved before the template is fetched because its
number is derived from the row id. If anything after the reservation fails
the row is deleted again before the error is raised, so no certificate with
a NULL number outlives the request.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import NamedTuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from .blobs import BlobStore
from .errors import (
    IssuanceFailed,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from .gate import check_issuable
from .numbering import allocate_certificate_number
from .overlay import render_overlay
from .store import RecordStore
from .whitelist import is_authorized


class IssuedCertificate(NamedTuple):
    pdf_bytes: bytes
    cert_no: str
    certificate_id: int
    filename: str


def certificate_filename(name: str) -> str:
    """``Sertifikat-Jane_Doe.pdf`` style attachment name."""
    slug = secure_filename(re.sub(r"\s+", "_", (name or "").strip()))
    return f"Sertifikat-{slug or 'peserta'}.pdf"


def _parse_event_id(event_id) -> int:
    if event_id is None or (isinstance(event_id, str) and not event_id.strip()):
        raise ValidationError("Name and event are required.")
    try:
        return int(event_id)
    except (TypeError, ValueError):
        raise ValidationError("Event id must be a number.") from None


def _discard_reservation(store, certificate_id: int) -> None:
    try:
        store.delete_certificate(certificate_id)
    except Exception:
        current_app.logger.exception(
            "[CERT-FAIL] could not delete orphan certificate id=%s", certificate_id
        )


def issue_certificate(
    event_id,
    participant_name: str | None,
    store: RecordStore | None = None,
    blobs: BlobStore | None = None,
    now: datetime | None = None,
) -> IssuedCertificate:
    """Issue one certificate for ``participant_name`` on ``event_id``.

    Raises a subclass of :class:`IssuanceError`. Errors detected before the
    reservation leave no trace; errors after it are raised as
    :class:`IssuanceFailed` once the reservation has been deleted.
    """
    if participant_name is not None and not isinstance(participant_name, str):
        raise ValidationError("Name must be text.")
    name = (participant_name or "").strip()
    if not name:
        raise ValidationError("Name and event are required.")
    event_id = _parse_event_id(event_id)
    store = store or RecordStore()

    event = store.get_event(event_id)
    check_issuable(event, now=now)
    if not is_authorized(store, event_id, name):
        current_app.logger.info(
            "[CERT-GATE] rejected name not whitelisted event=%s", event_id
        )
        raise UnauthorizedError(
            "Your name is not registered for this event. Contact the organizer."
        )

    blobs = blobs or BlobStore()
    certificate_id = store.create_certificate(event_id, name).id

    try:
        template_bytes = blobs.fetch_bytes(event.template_url)
        cert_no = allocate_certificate_number(store, certificate_id, event.cert_prefix)
        pdf_bytes = render_overlay(
            template_bytes,
            name,
            cert_no,
            (event.name_x, event.name_y),
            (event.cert_x, event.cert_y),
        )
    except Exception as exc:
        current_app.logger.warning(
            "[CERT-FAIL] event=%s certificate=%s error=%r",
            event_id,
            certificate_id,
            exc,
        )
        _discard_reservation(store, certificate_id)
        cause = exc
        if isinstance(exc, SQLAlchemyError):
            cause = StorageError("Could not save certificate number.")
        raise IssuanceFailed(cause) from exc

    current_app.logger.info(
        "[CERT] event=%s certificate=%s number=%s", event_id, certificate_id, cert_no
    )
    return IssuedCertificate(
        pdf_bytes=pdf_bytes,
        cert_no=cert_no,
        certificate_id=certificate_id,
        filename=certificate_filename(name),
    )
