from __future__ import annotations

from flask import Blueprint, Response, request

from ..shared.errors import ValidationError
from ..shared.issuance import issue_certificate

bp = Blueprint("generate", __name__, url_prefix="/api")


@bp.post("/generate")
def generate():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object.")
    issued = issue_certificate(payload.get("eventId"), payload.get("name"))
    resp = Response(issued.pdf_bytes, mimetype="application/pdf")
    resp.headers["Content-Disposition"] = f'attachment; filename="{issued.filename}"'
    resp.headers["X-Certificate-Number"] = issued.cert_no
    return resp
