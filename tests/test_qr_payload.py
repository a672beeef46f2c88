import base64
import json

import pytest

from services.check_in.qr.image import generate_qr_data_url
from services.check_in.qr.payload import PayloadDecodeError, QRCodePayload, create_payload
from services.check_in.qr.signature import sign, verify_payload

FIXED_TS = "2024-01-01T00:00:00Z"


def test_signature_is_base64_of_joined_fields():
    payload = create_payload("T1", "E1", "A1", timestamp=FIXED_TS)

    assert payload.signature == base64.b64encode(b"T1-E1-A1-2024-01-01T00:00:00Z").decode()
    assert verify_payload(payload)


def test_create_payload_stamps_utc_iso_timestamp():
    payload = create_payload("T1", "E1", "A1")

    assert payload.timestamp.endswith("Z")
    assert "T" in payload.timestamp
    assert verify_payload(payload)


def test_json_round_trip_keeps_signature_valid():
    payload = create_payload("T1", "E1", "A1", attendee_name="Ada")

    decoded = QRCodePayload.from_json(payload.to_json())

    assert decoded == payload
    assert verify_payload(decoded)


def test_wire_format_uses_camel_case_and_omits_missing_name():
    payload = create_payload("T1", "E1", "A1", timestamp=FIXED_TS)

    data = json.loads(payload.to_json())

    assert set(data) == {"ticketId", "eventId", "attendeeId", "timestamp", "signature"}
    assert data["signature"] == payload.signature


@pytest.mark.parametrize("field,value", [
    ("ticket_id", "T2"),
    ("event_id", "E2"),
    ("attendee_id", "A2"),
    ("timestamp", "2024-01-01T00:00:01Z"),
])
def test_editing_any_signed_field_breaks_signature(field, value):
    payload = create_payload("T1", "E1", "A1", timestamp=FIXED_TS)

    tampered = payload.model_copy(update={field: value})

    assert not verify_payload(tampered)


def test_attendee_name_is_not_signed():
    payload = create_payload("T1", "E1", "A1", attendee_name="Ada", timestamp=FIXED_TS)

    renamed = payload.model_copy(update={"attendee_name": "Someone else"})

    assert verify_payload(renamed)


def test_signature_recomputed_for_other_attendee_is_rejected():
    payload = create_payload("T1", "E1", "A1", timestamp=FIXED_TS)

    forged = payload.model_copy(update={"signature": sign("T1", "E1", "A9", FIXED_TS)})

    assert not verify_payload(forged)


def test_verify_never_raises_on_broken_payload():
    broken = QRCodePayload.model_construct(ticket_id=None, event_id="E1", attendee_id="A1",
                                           timestamp=FIXED_TS, signature="x")

    assert verify_payload(broken) is False
    assert verify_payload(object()) is False


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", '{"ticketId": "T1"}'])
def test_from_json_raises_decode_error(raw):
    with pytest.raises(PayloadDecodeError):
        QRCodePayload.from_json(raw)


def test_qr_image_is_png_data_url():
    payload = create_payload("T1", "E1", "A1", timestamp=FIXED_TS)

    data_url = generate_qr_data_url(payload)

    assert data_url.startswith("data:image/png;base64,")
    png = base64.b64decode(data_url.split(",", 1)[1])
    assert png[:8] == b"\x89PNG\r\n\x1a\n"
