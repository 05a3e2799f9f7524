from __future__ import annotations

from sqlalchemy.orm import validates

from .app import db


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    event_name = db.Column(db.String(255), nullable=False, unique=True)
    cert_prefix = db.Column(db.String(64), nullable=False)
    expiry_date = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    template_url = db.Column(db.String(1024), nullable=False)
    # Percent of the first template page, top-left origin.
    name_x = db.Column(db.Float, nullable=False, default=50.0)
    name_y = db.Column(db.Float, nullable=False, default=50.0)
    cert_x = db.Column(db.Float, nullable=False, default=50.0)
    cert_y = db.Column(db.Float, nullable=False, default=60.0)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    whitelists = db.relationship(
        "WhitelistEntry",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="WhitelistEntry.created_at.desc()",
    )
    certificates = db.relationship(
        "Certificate",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Certificate.issued_at.desc()",
    )

    @validates("cert_prefix")
    def _normalize_prefix(self, key, value):
        return (value or "").strip().upper()

    def to_dict(self, include_related: bool = False) -> dict:
        data = {
            "id": self.id,
            "eventName": self.event_name,
            "certPrefix": self.cert_prefix,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "isActive": bool(self.is_active),
            "templateUrl": self.template_url,
            "nameX": self.name_x,
            "nameY": self.name_y,
            "certX": self.cert_x,
            "certY": self.cert_y,
        }
        if include_related:
            data["whitelists"] = [entry.to_dict() for entry in self.whitelists]
            data["certificates"] = [cert.to_dict() for cert in self.certificates]
            data["_count"] = {
                "whitelists": len(self.whitelists),
                "certificates": len(self.certificates),
            }
        return data


class WhitelistEntry(db.Model):
    __tablename__ = "whitelists"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    __table_args__ = (
        db.Index(
            "uix_whitelists_event_name_lower",
            "event_id",
            db.func.lower(name),
            unique=True,
        ),
    )

    event = db.relationship("Event", back_populates="whitelists")

    @validates("name")
    def _strip_name(self, key, value):
        return (value or "").strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "name": self.name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class Certificate(db.Model):
    __tablename__ = "certificates"
    # ids are never reused, so certificate numbers are never reissued
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(255), nullable=False)
    # NULL while reserved; set once the number is allocated.
    cert_no = db.Column(db.String(128), unique=True)
    issued_at = db.Column(db.DateTime, server_default=db.func.now())

    event = db.relationship("Event", back_populates="certificates")

    @property
    def is_reserved(self) -> bool:
        return not self.cert_no

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "name": self.name,
            "certNo": self.cert_no,
            "date": self.issued_at.isoformat() if self.issued_at else None,
        }
