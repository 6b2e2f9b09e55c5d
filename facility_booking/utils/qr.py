import json

QR_PAYLOAD_TYPE = "FACILITY_ACCESS"


def build_qr_payload(reservation_id: int, checkin_code: str, resource_ids: list[int]) -> str:
    """The string a check-in QR image encodes. Rendering the image is left to the client."""
    return json.dumps({
        "bookingId":   reservation_id,
        "checkInCode": checkin_code,
        "facilities":  resource_ids,
        "type":        QR_PAYLOAD_TYPE,
    })


def parse_qr_payload(raw: str) -> tuple[int | None, str]:
    """
    Return (reservation_id, checkin_code) from a scanned payload.
    Raises ValueError when the payload is not one of ours.
    """
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ValueError("Invalid QR code format") from exc
    if not isinstance(parsed, dict) or parsed.get("type") != QR_PAYLOAD_TYPE:
        raise ValueError("Invalid QR code type")
    code = parsed.get("checkInCode")
    if not isinstance(code, str) or not code:
        raise ValueError("Invalid QR code format")
    booking_id = parsed.get("bookingId")
    if booking_id is None:
        return None, code
    try:
        return int(booking_id), code
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid QR code format") from exc
