"""
Data models for event seat availability.

These dataclasses represent the canonical shape of a seat snapshot row,
independent of how the origin serves it.
"""
from dataclasses import dataclass
from typing import Optional, List, Dict, Any
from enum import Enum


class SeatStatus(Enum):
    """Sale status of an event seat."""
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class SeatRecord:
    """A single seat of an event as last reported by the origin."""
    id: str
    label: str
    status: SeatStatus
    row: Optional[str] = None
    column: Optional[int] = None
    tier_code: Optional[str] = None
    seat_id: Optional[str] = None  # Physical seat, shared across events
    seat_type: Optional[str] = None
    price: Optional[float] = None

    @property
    def is_available(self) -> bool:
        return self.status is SeatStatus.AVAILABLE

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SeatRecord":
        """
        Build a record from the origin's camelCase payload.

        Raises:
            ValueError: If the identifier is missing or the status is unknown
        """
        seat_id = data.get("seatId")
        record_id = data.get("eventSeatId") or seat_id or data.get("id")
        if not record_id:
            raise ValueError(f"Seat payload without identifier: {data!r}")

        raw_status = str(data.get("status") or "").upper()
        try:
            status = SeatStatus(raw_status)
        except ValueError:
            raise ValueError(f"Unknown seat status {raw_status!r} for seat {record_id}")

        number = data.get("number")
        price = data.get("price")
        return cls(
            id=str(record_id),
            label=str(data.get("label") or record_id),
            status=status,
            row=data.get("row"),
            column=int(number) if number is not None else None,
            tier_code=data.get("tierCode"),
            seat_id=str(seat_id) if seat_id else None,
            seat_type=data.get("type"),
            price=float(price) if price is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the origin's wire shape for JSON responses."""
        return {
            "eventSeatId": self.id,
            "seatId": self.seat_id,
            "label": self.label,
            "row": self.row,
            "number": self.column,
            "type": self.seat_type,
            "status": self.status.value,
            "tierCode": self.tier_code,
            "price": self.price,
        }


def parse_seats(payload: Any) -> List[SeatRecord]:
    """
    Decode a seat query response.

    Accepts a bare JSON array or an object wrapping it under "seats".
    """
    if isinstance(payload, dict):
        payload = payload.get("seats", [])
    if not isinstance(payload, list):
        raise ValueError(f"Expected a list of seats, got {type(payload).__name__}")
    seats = []
    for item in payload:
        if not isinstance(item, dict):
            raise ValueError(f"Expected a seat object, got {type(item).__name__}")
        seats.append(SeatRecord.from_api(item))
    return seats
