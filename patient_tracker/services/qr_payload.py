"""
QR payload codec for patient wristbands and secondary tags.

A printed tag carries a compact JSON object such as
``{"patientId": "P100", "type": "wristband", "timestamp": "..."}``. Older
tags, and anything hand-typed at a station, are just the bare patient id.
Decoding is total: any string maps to some patient id.
"""

from dataclasses import dataclass
from typing import Optional
import json

WRISTBAND = "wristband"
OTHER = "other"

# Stand-in id for an empty scan, so decode never yields an empty patient id
EMPTY_TAG_PATIENT_ID = "unknown"


@dataclass(frozen=True)
class QRPayload:
    patient_id: str
    type: str = OTHER
    timestamp: Optional[str] = None

    @property
    def is_wristband(self) -> bool:
        return self.type == WRISTBAND


def decode(raw: str) -> QRPayload:
    """
    Decode a scanned tag; malformed or unstructured input falls back to the raw string as the id.
    The type is normalised: anything other than ``"wristband"`` decodes as ``"other"``, the only
    two values a scan log row may carry.
    """
    fallback = QRPayload(patient_id=raw or EMPTY_TAG_PATIENT_ID)
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError, RecursionError):
        return fallback

    if not isinstance(parsed, dict):
        return fallback

    patient_id = parsed.get("patientId")
    if patient_id is None or patient_id == "":
        return fallback

    tag_type = parsed.get("type")
    timestamp = parsed.get("timestamp")
    return QRPayload(
        patient_id=str(patient_id),
        type=WRISTBAND if tag_type == WRISTBAND else OTHER,
        timestamp=str(timestamp) if timestamp is not None else None,
    )


def encode(patient_id: str, tag_type: str = WRISTBAND, timestamp: Optional[str] = None) -> str:
    """Produce the JSON payload printed into a patient's QR code."""
    payload = {"patientId": patient_id, "type": tag_type}
    if timestamp is not None:
        payload["timestamp"] = timestamp
    return json.dumps(payload, separators=(",", ":"))


def classify(raw: str) -> str:
    """Return ``"wristband"`` or ``"other"`` for a scanned tag."""
    return decode(raw).type
