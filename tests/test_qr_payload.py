import json

import pytest

from patient_tracker.services.qr_payload import (
    EMPTY_TAG_PATIENT_ID,
    OTHER,
    WRISTBAND,
    QRPayload,
    classify,
    decode,
    encode,
)


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        "P100",
        "null",
        "[]",
        "{}",
        "123",
        '"quoted"',
        "{not json",
        '{"patientId": ""}',
        '{"patientId": null, "type": "wristband"}',
        '{"type": "wristband"}',
        "[" * 100000,
        "\x00\xff",
    ],
)
def test_decode_is_total(raw: str) -> None:
    payload = decode(raw)

    assert isinstance(payload.patient_id, str)
    assert payload.patient_id
    assert payload.type in (WRISTBAND, OTHER)


def test_unstructured_tag_uses_raw_string_as_patient_id() -> None:
    assert decode("P100") == QRPayload(patient_id="P100", type=OTHER)


def test_empty_tag_maps_to_placeholder_id() -> None:
    assert decode("").patient_id == EMPTY_TAG_PATIENT_ID


def test_json_without_patient_id_falls_back_to_raw() -> None:
    raw = '{"type": "wristband"}'

    assert decode(raw) == QRPayload(patient_id=raw, type=OTHER)


def test_encoded_wristband_decodes_to_same_fields() -> None:
    payload = decode(encode("P1", WRISTBAND))

    assert payload.patient_id == "P1"
    assert payload.type == WRISTBAND
    assert payload.timestamp is None


def test_timestamp_is_carried_through() -> None:
    raw = encode("P1", OTHER, "2025-01-01T00:00:00Z")

    assert json.loads(raw) == {"patientId": "P1", "type": "other", "timestamp": "2025-01-01T00:00:00Z"}
    assert decode(raw).timestamp == "2025-01-01T00:00:00Z"


def test_missing_or_unknown_type_defaults_to_other() -> None:
    assert decode('{"patientId": "P1"}').type == OTHER
    assert decode('{"patientId": "P1", "type": "culture"}').type == OTHER


def test_numeric_patient_id_is_stringified() -> None:
    assert decode('{"patientId": 42, "type": "wristband"}').patient_id == "42"


def test_classify() -> None:
    assert classify(encode("P1", WRISTBAND)) == WRISTBAND
    assert classify(encode("P1", OTHER)) == OTHER
    assert classify("P1") == OTHER
