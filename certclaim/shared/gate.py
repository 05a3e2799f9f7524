from __future__ import annotations

from datetime import datetime

from .errors import GateError, NotFoundError
from .time import as_utc, now_utc


def check_issuable(event, now: datetime | None = None) -> None:
    """Raise unless ``event`` exists, is active and is not past its expiry.

    The active flag and the expiry date are independent gates; both must
    pass.
    """
    if event is None:
        raise NotFoundError("Event not found.")
    if not event.is_active:
        raise GateError.inactive()
    if event.expiry_date is not None:
        current = as_utc(now or now_utc())
        deadline = as_utc(event.expiry_date)
        if current > deadline:
            raise GateError.expired(deadline)
