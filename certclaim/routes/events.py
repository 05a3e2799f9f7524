from __future__ import annotations

from flask import Blueprint, jsonify

from ..app import db
from ..models import Event

bp = Blueprint("events", __name__, url_prefix="/api/events")


@bp.get("")
def list_events():
    """Events for the public claim form, newest first."""
    events = db.session.query(Event).order_by(Event.id.desc()).all()
    return jsonify(
        events=[
            {
                "id": e.id,
                "eventName": e.event_name,
                "isActive": bool(e.is_active),
                "expiryDate": e.expiry_date.isoformat() if e.expiry_date else None,
            }
            for e in events
        ]
    )
