"""Opaque frm_payload: compact JSON of the decoded fields, base64 wrapped."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Mapping

from ..errors import ValidationError


def encode_frm_payload(fields: Mapping[str, Any]) -> str:
    try:
        raw = json.dumps(dict(fields), separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"fields are not JSON serialisable: {exc}") from exc
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_frm_payload(frm_payload: str) -> dict[str, Any]:
    try:
        raw = base64.b64decode(frm_payload.encode("ascii"), validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, json.JSONDecodeError) as exc:
        raise ValidationError(f"frm_payload is not base64 JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError("frm_payload does not hold a JSON object")
    return data


def to_hex(frm_payload: str) -> str:
    """Hex dump of the raw frame bytes, handy when comparing against a network server console."""
    return base64.b64decode(frm_payload).hex().upper()
