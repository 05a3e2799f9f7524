"""SQLAlchemy-backed record store used by the issuance pipeline."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.attributes import set_committed_value

from ..app import db
from ..models import Certificate, Event, WhitelistEntry
from .errors import StorageError, ValidationError


def _is_whitelist_conflict(error: IntegrityError) -> bool:
    details: str = ""
    if getattr(error, "orig", None) is not None:
        details = str(error.orig)
    if not details:
        details = str(error)
    lowered = details.lower()
    return "whitelists" in lowered or "uix_whitelists_event_name_lower" in lowered


class RecordStore:
    """Reads and writes Event, WhitelistEntry and Certificate rows.

    Every write commits immediately; a failed write is rolled back and
    raised as :class:`StorageError`.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(f"Could not {action}.") from exc

    def get_event(self, event_id: int) -> Event | None:
        return self.session.get(Event, event_id)

    def list_whitelist(self, event_id: int) -> list[WhitelistEntry]:
        return (
            self.session.query(WhitelistEntry)
            .filter(WhitelistEntry.event_id == event_id)
            .all()
        )

    def add_whitelist_entry(self, event_id: int, name: str) -> WhitelistEntry:
        entry = WhitelistEntry(event_id=event_id, name=name)
        self.session.add(entry)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if _is_whitelist_conflict(exc):
                raise ValidationError(
                    "Name is already registered for this event.", reason="duplicate"
                ) from exc
            raise StorageError("Could not save whitelist entry.") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Could not save whitelist entry.") from exc
        return entry

    def delete_whitelist_entry(self, event_id: int, entry_id: int) -> bool:
        entry = self.session.get(WhitelistEntry, entry_id)
        if not entry or entry.event_id != event_id:
            return False
        self.session.delete(entry)
        self._commit("delete whitelist entry")
        return True

    def create_certificate(self, event_id: int, name: str) -> Certificate:
        cert = Certificate(event_id=event_id, name=name)
        self.session.add(cert)
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Could not reserve certificate.") from exc
        certificate_id = cert.id
        self._commit("reserve certificate")
        # Commit expires the row; keep the id readable without a reload.
        set_committed_value(cert, "id", certificate_id)
        return cert

    def set_certificate_number(self, certificate_id: int, number: str) -> None:
        cert = self.session.get(Certificate, certificate_id)
        if cert is None:
            raise StorageError(f"Certificate {certificate_id} disappeared.")
        cert.cert_no = number
        self._commit("save certificate number")

    def delete_certificate(self, certificate_id: int) -> None:
        # The session may be mid-failure; start from a clean state.
        self.session.rollback()
        cert = self.session.get(Certificate, certificate_id)
        if cert is None:
            return
        self.session.delete(cert)
        self._commit("delete certificate")

    def list_orphan_certificates(
        self, created_before: datetime | None = None
    ) -> list[Certificate]:
        q = self.session.query(Certificate).filter(Certificate.cert_no.is_(None))
        if created_before is not None:
            q = q.filter(Certificate.issued_at < created_before)
        return q.order_by(Certificate.id).all()

    def purge_certificates(self, certificates: list[Certificate]) -> int:
        for cert in certificates:
            self.session.delete(cert)
        self._commit("purge certificates")
        return len(certificates)
