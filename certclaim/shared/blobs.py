"""Template blob store: fetch template bytes by location, save uploads."""

from __future__ import annotations

import os
import tempfile
import time

import requests
from flask import current_app
from werkzeug.utils import secure_filename

from .errors import TemplateUnavailableError, ValidationError


class BlobStore:
    """Resolve an event's ``template_url`` to bytes.

    ``http://`` and ``https://`` locations are downloaded; anything else is
    a filename relative to ``template_root``.
    """

    def __init__(self, template_root: str | None = None, timeout: float | None = None):
        self.template_root = template_root or current_app.config["TEMPLATE_ROOT"]
        self.timeout = (
            timeout
            if timeout is not None
            else current_app.config.get("TEMPLATE_FETCH_TIMEOUT", 30)
        )

    def _local_path(self, location: str) -> str:
        root = os.path.abspath(self.template_root)
        path = os.path.abspath(os.path.join(root, location.lstrip("/")))
        if os.path.commonpath([root, path]) != root:
            raise TemplateUnavailableError("Template PDF not found.")
        return path

    def fetch_bytes(self, location: str | None) -> bytes:
        if not location:
            raise TemplateUnavailableError("Event has no template configured.")
        if location.startswith(("http://", "https://")):
            try:
                response = requests.get(location, timeout=self.timeout)
            except requests.RequestException as exc:
                raise TemplateUnavailableError("Template PDF not found.") from exc
            if not response.ok:
                current_app.logger.warning(
                    "[TEMPLATE] fetch failed status=%s url=%s",
                    response.status_code,
                    location,
                )
                raise TemplateUnavailableError("Template PDF not found.")
            return response.content
        path = self._local_path(location)
        try:
            with open(path, "rb") as handle:
                return handle.read()
        except OSError as exc:
            raise TemplateUnavailableError("Template PDF not found.") from exc

    def save_template(self, filename: str, data: bytes) -> str:
        """Store an uploaded template and return its location."""
        safe = secure_filename(filename or "")
        if not safe.lower().endswith(".pdf"):
            raise ValidationError("Template must be a PDF file.")
        stored = f"{int(time.time() * 1000)}-{safe}"
        _write_atomic(self._local_path(stored), data)
        return stored

    def discard_template(self, location: str) -> None:
        """Remove a saved upload that no event ended up referencing."""
        path = self._local_path(location)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError:
            current_app.logger.exception(
                "[TEMPLATE] could not remove unused upload %s", location
            )


def _write_atomic(path: str, data: bytes) -> None:
    dir_path = os.path.dirname(path)
    os.makedirs(dir_path, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path, suffix=".part")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
