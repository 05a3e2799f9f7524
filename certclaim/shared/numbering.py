from __future__ import annotations

MIN_SEQUENCE_DIGITS = 3


def format_certificate_number(certificate_id: int, prefix: str) -> str:
    """Compose ``"{id:03d}/{prefix}"``; ids wider than three digits are kept whole."""
    return f"{int(certificate_id):0{MIN_SEQUENCE_DIGITS}d}/{prefix}"


def allocate_certificate_number(store, certificate_id: int, prefix: str) -> str:
    """Derive the number from the reserved record id and persist it.

    Numbers come from store-assigned ids, so a reservation that is later
    rolled back leaves a permanent gap in the sequence.
    """
    cert_no = format_certificate_number(certificate_id, prefix)
    store.set_certificate_number(certificate_id, cert_no)
    return cert_no
