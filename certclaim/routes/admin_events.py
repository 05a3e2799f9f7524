from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from ..app import db
from ..models import Event
from ..shared.blobs import BlobStore
from ..shared.errors import NotFoundError, ValidationError
from ..shared.store import RecordStore
from ..shared.time import parse_datetime
from ..shared.whitelist import add_whitelist_entry

bp = Blueprint("admin_events", __name__, url_prefix="/api/admin/events")

COORDINATE_FIELDS = {
    "nameX": "name_x",
    "nameY": "name_y",
    "certX": "cert_x",
    "certY": "cert_y",
}
_BOOL_TRUE = {"1", "true", "yes", "on"}


def _get_event_or_404(event_id: int) -> Event:
    event = db.session.get(Event, event_id)
    if not event:
        raise NotFoundError("Event not found.")
    return event


def _parse_coordinate(field: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number.") from None


def _parse_expiry(value) -> datetime | None:
    try:
        return parse_datetime(value)
    except ValueError:
        raise ValidationError(f"Invalid expiry date: {value!r}.") from None


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOL_TRUE


def _commit_event(event: Event) -> None:
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ValidationError(
            "An event with this name already exists.", reason="duplicate"
        ) from exc


def _apply_fields(event: Event, data, *, partial: bool) -> None:
    name = (data.get("eventName") or "").strip()
    if name:
        event.event_name = name
    elif not partial:
        raise ValidationError("Event name is required.")

    prefix = (data.get("certPrefix") or "").strip()
    if prefix:
        event.cert_prefix = prefix
    elif not partial:
        raise ValidationError("Certificate number prefix is required.")

    if "expiryDate" in data or not partial:
        event.expiry_date = _parse_expiry(data.get("expiryDate"))

    for field, attr in COORDINATE_FIELDS.items():
        raw = data.get(field)
        if raw is None or raw == "":
            if not partial:
                raise ValidationError(f"{field} is required.")
            continue
        setattr(event, attr, _parse_coordinate(field, raw))

    if "isActive" in data:
        event.is_active = _parse_bool(data.get("isActive"))


@bp.get("")
def list_events():
    events = db.session.query(Event).order_by(Event.id.desc()).all()
    return jsonify(events=[e.to_dict() for e in events])


@bp.post("")
def create_event():
    upload = request.files.get("file")
    if not upload or not upload.filename:
        raise ValidationError("Template PDF file is required.")
    event = Event(is_active=True)
    _apply_fields(event, request.form, partial=False)
    blobs = BlobStore()
    stored = blobs.save_template(upload.filename, upload.read())
    event.template_url = stored
    db.session.add(event)
    try:
        _commit_event(event)
    except ValidationError:
        blobs.discard_template(stored)
        raise
    current_app.logger.info(
        "[EVENT] created id=%s template=%s", event.id, event.template_url
    )
    return jsonify(success=True, event=event.to_dict()), 201


@bp.get("/<int:event_id>")
def event_detail(event_id: int):
    event = _get_event_or_404(event_id)
    return jsonify(event=event.to_dict(include_related=True))


@bp.patch("/<int:event_id>")
def update_event(event_id: int):
    event = _get_event_or_404(event_id)
    blobs = BlobStore()
    stored = None
    if request.mimetype == "multipart/form-data":
        _apply_fields(event, request.form, partial=True)
        upload = request.files.get("file")
        if upload and upload.filename:
            stored = blobs.save_template(upload.filename, upload.read())
            event.template_url = stored
    else:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Expected a JSON object.")
        _apply_fields(event, data, partial=True)
        template_url = (data.get("templateUrl") or "").strip()
        if template_url:
            event.template_url = template_url
    try:
        _commit_event(event)
    except ValidationError:
        if stored:
            blobs.discard_template(stored)
        raise
    return jsonify(success=True, event=event.to_dict())


@bp.delete("/<int:event_id>")
def delete_event(event_id: int):
    event = _get_event_or_404(event_id)
    db.session.delete(event)
    db.session.commit()
    current_app.logger.info("[EVENT] deleted id=%s", event_id)
    return jsonify(success=True)


@bp.post("/<int:event_id>/whitelist")
def add_whitelist(event_id: int):
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object.")
    entry = add_whitelist_entry(RecordStore(), event_id, data.get("name"))
    return jsonify(success=True, entry=entry.to_dict()), 201


@bp.delete("/<int:event_id>/whitelist/<int:entry_id>")
def delete_whitelist(event_id: int, entry_id: int):
    if not RecordStore().delete_whitelist_entry(event_id, entry_id):
        raise NotFoundError("Whitelist entry not found.")
    return jsonify(success=True)
