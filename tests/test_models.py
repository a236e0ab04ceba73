"""
Tests for seat record decoding.
"""
import dataclasses

import pytest

from seatsync.models import SeatRecord, SeatStatus, parse_seats


def test_from_api_maps_wire_fields():
    seat = SeatRecord.from_api({
        "eventSeatId": "es-7",
        "seatId": "s-7",
        "label": "B7",
        "row": "B",
        "number": "7",
        "type": "AISLE",
        "status": "reserved",
        "tierCode": "GA",
        "price": "45",
    })

    assert seat.id == "es-7"
    assert seat.seat_id == "s-7"
    assert seat.row == "B"
    assert seat.column == 7
    assert seat.seat_type == "AISLE"
    assert seat.status == SeatStatus.RESERVED
    assert seat.tier_code == "GA"
    assert seat.price == 45.0
    assert not seat.is_available


def test_identifier_falls_back_to_seat_id():
    seat = SeatRecord.from_api({"seatId": "s-1", "status": "BLOCKED"})

    assert seat.id == "s-1"
    assert seat.label == "s-1"
    assert seat.status == SeatStatus.BLOCKED
    assert seat.tier_code is None


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError, match="Unknown seat status"):
        SeatRecord.from_api({"eventSeatId": "es-1", "status": "HELD"})


def test_missing_identifier_is_rejected():
    with pytest.raises(ValueError):
        SeatRecord.from_api({"label": "A1", "status": "AVAILABLE"})


def test_records_are_immutable():
    seat = SeatRecord(id="es-1", label="A1", status=SeatStatus.AVAILABLE)

    with pytest.raises(dataclasses.FrozenInstanceError):
        seat.status = SeatStatus.SOLD


def test_to_dict_round_trips_wire_shape():
    payload = {
        "eventSeatId": "es-1", "seatId": "s-1", "label": "A1", "row": "A", "number": 1,
        "type": None, "status": "SOLD", "tierCode": "VIP", "price": 99.0,
    }

    assert SeatRecord.from_api(payload).to_dict() == payload


def test_parse_seats_accepts_wrapped_payload():
    assert len(parse_seats({"seats": [{"eventSeatId": "es-1", "status": "SOLD"}]})) == 1
    assert parse_seats({}) == []


def test_parse_seats_rejects_non_list():
    with pytest.raises(ValueError):
        parse_seats("nope")


def test_parse_seats_rejects_non_object_items():
    with pytest.raises(ValueError, match="Expected a seat object"):
        parse_seats([{"eventSeatId": "es-1", "status": "SOLD"}, 7])
