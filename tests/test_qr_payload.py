import json

import pytest
from pydantic import ValidationError

from acetrack.models.attendance import (
    MAX_AVATAR_LENGTH,
    MAX_FIELD_INT,
    MAX_NAME_LENGTH,
    MAX_STUDENT_ID_LENGTH,
    StudentIdentity,
)
from acetrack.services.qr_payload import (
    PAYLOAD_VERSION,
    QRPayloadError,
    decode_payload,
    encode_payload,
    render_qr_data_uri,
    render_qr_png,
)


def test_round_trip(identity):
    assert decode_payload(encode_payload(identity)) == identity


def test_round_trip_without_optional_fields():
    identity = StudentIdentity(student_id="2021-0042", first_name="Jo", last_name="Reyes", course_id=1, year_level=4)
    assert decode_payload(encode_payload(identity)) == identity


def _largest_identity(ch):
    # four UTF-8 bytes per character is the worst case for QR capacity
    return StudentIdentity(
        student_id=ch * MAX_STUDENT_ID_LENGTH,
        first_name=ch * MAX_NAME_LENGTH,
        middle_name=ch * MAX_NAME_LENGTH,
        last_name=ch * MAX_NAME_LENGTH,
        course_id=MAX_FIELD_INT,
        year_level=MAX_FIELD_INT,
        avatar=ch * MAX_AVATAR_LENGTH,
    )


@pytest.mark.parametrize("ch", ["\N{GRINNING FACE}", "\"", "\\", "\N{LATIN SMALL LETTER N WITH TILDE}", "Z"])
def test_round_trip_at_field_limits(ch):
    identity = _largest_identity(ch)
    payload = encode_payload(identity)

    assert decode_payload(payload) == identity
    assert render_qr_png(payload).startswith(b"\x89PNG")


@pytest.mark.parametrize(
    "overrides",
    [
        {"course_id": MAX_FIELD_INT + 1},
        {"year_level": 2**31},
        {"student_id": "S" * (MAX_STUDENT_ID_LENGTH + 1)},
        {"first_name": "A" * (MAX_NAME_LENGTH + 1)},
        {"middle_name": "A" * 5000},
        {"last_name": "Cruz\nDROP"},
        {"avatar": "https://cdn.acetrack.app/" + "a" * MAX_AVATAR_LENGTH},
    ],
)
def test_identity_rejects_values_a_qr_code_cannot_carry(overrides):
    data = {"student_id": "S-001", "first_name": "Maria", "last_name": "Cruz", "course_id": 3, "year_level": 2}
    data.update(overrides)
    with pytest.raises(ValidationError):
        StudentIdentity(**data)


def test_encoded_payload_is_compact_sorted_and_versioned(identity):
    payload = encode_payload(identity)
    data = json.loads(payload)

    assert data["v"] == PAYLOAD_VERSION
    assert list(data) == sorted(data)
    assert " " not in payload
    assert "avatar" not in data  # None fields omitted
    assert "password" not in payload
    assert "hashed_password" not in payload


def test_identity_snapshot_is_immutable(identity):
    with pytest.raises(ValidationError):
        identity.first_name = "Changed"


def test_decode_accepts_bytes(identity):
    assert decode_payload(encode_payload(identity).encode("utf-8")) == identity


def test_decode_legacy_payload_without_version():
    legacy = json.dumps(
        {
            "student_id": "S-001",
            "firstname": "Maria",
            "middlename": "Santos",
            "lastname": "Cruz",
            "course_id": "3",
            "year_level": "2nd",
        }
    )
    identity = decode_payload(legacy)
    assert identity.first_name == "Maria"
    assert identity.middle_name == "Santos"
    assert identity.last_name == "Cruz"
    assert identity.course_id == 3
    assert identity.year_level == 2


def test_decode_numeric_student_id_becomes_text():
    payload = json.dumps({"v": 1, "student_id": 20210042, "first_name": "A", "last_name": "B", "course_id": 1, "year_level": 1})
    assert decode_payload(payload).student_id == "20210042"


def test_decode_ignores_unknown_fields():
    payload = json.dumps(
        {"v": 1, "student_id": "S-9", "first_name": "A", "last_name": "B", "course_id": 1, "year_level": 1, "password": "x"}
    )
    identity = decode_payload(payload)
    assert not hasattr(identity, "password")


def _valid(**overrides):
    data = {"v": 1, "student_id": "S-001", "first_name": "Maria", "last_name": "Cruz", "course_id": 3, "year_level": 2}
    data.update(overrides)
    return json.dumps(data)


@pytest.mark.parametrize(
    "payload",
    [
        "not-json",
        "",
        "[]",
        "null",
        "42",
        '"S-001"',
        _valid(v=2),
        _valid(v="1"),
        _valid(v=True),
        _valid(v={"nested": 1}),
        _valid(student_id=""),
        _valid(student_id="   "),
        _valid(student_id=["S-001"]),
        _valid(first_name=""),
        _valid(last_name=None),
        _valid(course_id="abc"),
        _valid(course_id=True),
        _valid(course_id=10**30),
        _valid(year_level=0),
        _valid(year_level=-1),
        _valid(year_level="2nd"),  # free text only for legacy codes
        _valid(year_level="²"),
        _valid(first_name="Ma\u0000ria"),
        _valid(course_id=MAX_FIELD_INT + 1),
        json.dumps({"student_id": "S-001", "first_name": "A", "last_name": "B", "course_id": 1}),
        "[" * 2000 + "]" * 2000,
        "x" * 10_000,
        b"\xff\xfe\xfa",
        42,
        None,
    ],
)
def test_decode_rejects_malformed_payloads(payload):
    with pytest.raises(QRPayloadError) as exc_info:
        decode_payload(payload)
    assert exc_info.value.reason == "parse_error"


def test_render_qr_png(identity):
    png = render_qr_png(encode_payload(identity))
    assert png.startswith(b"\x89PNG\r\n\x1a\n")


def test_render_qr_data_uri(identity):
    assert render_qr_data_uri(encode_payload(identity)).startswith("data:image/png;base64,")


def test_render_qr_png_rejects_oversized_payload():
    with pytest.raises(QRPayloadError) as exc_info:
        render_qr_png("a" * 5000)
    assert exc_info.value.reason == "parse_error"
