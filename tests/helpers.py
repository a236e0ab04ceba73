"""
Shared fakes for seat cache tests: a controllable clock and origin.
"""
import asyncio
from typing import List, Optional

from seatsync.models import SeatRecord, SeatStatus


def make_seats(count: int, status: SeatStatus = SeatStatus.AVAILABLE) -> List[SeatRecord]:
    return [
        SeatRecord(id=f"seat-{i}", label=f"A{i}", status=status, row="A", column=i, tier_code="STD")
        for i in range(1, count + 1)
    ]


async def settle(rounds: int = 10) -> None:
    """Let pending tasks on the loop run to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeOrigin:
    """
    Stand-in for the seat query: counts calls, optionally holds each call
    until released, then returns seats or raises the configured error.
    """

    def __init__(self, seats: Optional[List[SeatRecord]] = None, hold: bool = False):
        self.calls: List[str] = []
        self.seats = seats if seats is not None else make_seats(3)
        self.error: Optional[BaseException] = None
        self._release = asyncio.Event()
        if not hold:
            self._release.set()

    def hold(self) -> None:
        self._release.clear()

    def release(self) -> None:
        self._release.set()

    async def __call__(self, key: str) -> List[SeatRecord]:
        self.calls.append(key)
        await self._release.wait()
        if self.error is not None:
            raise self.error
        return list(self.seats)
