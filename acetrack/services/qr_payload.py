"""Student QR payloads: compact JSON snapshot of a StudentIdentity.

Printed codes outlive schema changes, so every payload carries a version
tag ``"v"``. Codes printed before the tag existed use ``firstname`` /
``middlename`` / ``lastname`` keys and free-text year levels ("1st"); they
decode as version 0.
"""
from __future__ import annotations

import base64
import io
import json
import re
from typing import Any

import qrcode
import qrcode.exceptions
from pydantic import ValidationError

from acetrack.models.attendance import MAX_FIELD_INT, StudentIdentity

PAYLOAD_VERSION = 1
SUPPORTED_VERSIONS = {0, 1}
MAX_PAYLOAD_LENGTH = 4096  # larger than any QR code can hold

_LEADING_INT_RE = re.compile(r"^\s*(\d{1,4})")
_LEGACY_KEYS = {"firstname": "first_name", "middlename": "middle_name", "lastname": "last_name"}


class QRPayloadError(ValueError):
    """Raised for any payload that is not a well-formed student QR code."""

    reason = "parse_error"
    status_code = 400


def encode_payload(identity: StudentIdentity) -> str:
    data: dict[str, Any] = identity.model_dump(exclude_none=True)
    data["v"] = PAYLOAD_VERSION
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _positive_int(value: Any, field: str, *, lenient: bool) -> int:
    if isinstance(value, bool):
        raise QRPayloadError(f"{field} must be an integer")
    if isinstance(value, int):
        if value > MAX_FIELD_INT:
            raise QRPayloadError(f"{field} is out of range")
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit() and len(text) <= 9:
            return int(text)
        if lenient:
            # legacy year levels were free text: "1st", "2nd year"
            match = _LEADING_INT_RE.match(text)
            if match:
                return int(match.group(1))
    raise QRPayloadError(f"{field} must be an integer")


def _text(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def decode_payload(payload: str | bytes) -> StudentIdentity:
    """Parse raw scanner text. ``QRPayloadError`` is the only exception raised."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError:
            raise QRPayloadError("Payload is not valid UTF-8") from None
    if not isinstance(payload, str):
        raise QRPayloadError("Payload must be text")
    if len(payload) > MAX_PAYLOAD_LENGTH:
        raise QRPayloadError("Payload is too long")

    try:
        data = json.loads(payload)
    except (ValueError, RecursionError):
        raise QRPayloadError("Payload is not valid JSON") from None
    if not isinstance(data, dict):
        raise QRPayloadError("Payload must be a JSON object")

    version = data.pop("v", 0)
    if type(version) is not int or version not in SUPPORTED_VERSIONS:
        raise QRPayloadError(f"Unsupported payload version: {version!r}")
    if version == 0:
        for legacy, current in _LEGACY_KEYS.items():
            if legacy in data:
                data.setdefault(current, data.pop(legacy))

    for field in ("student_id", "first_name", "last_name"):
        if not data.get(field):
            raise QRPayloadError(f"Missing required field: {field}")
    for field in ("course_id", "year_level"):
        if field not in data:
            raise QRPayloadError(f"Missing required field: {field}")
        data[field] = _positive_int(data[field], field, lenient=version == 0)
    data["student_id"] = _text(data["student_id"])

    try:
        return StudentIdentity.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(str(e["loc"][0]) for e in exc.errors() if e.get("loc"))
        raise QRPayloadError(f"Invalid payload fields: {fields or 'unknown'}") from None


def render_qr_png(payload: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,  # auto-size
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except (ValueError, qrcode.exceptions.DataOverflowError):
        raise QRPayloadError("Payload is too large for a QR code") from None
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def render_qr_data_uri(payload: str) -> str:
    encoded = base64.b64encode(render_qr_png(payload)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
