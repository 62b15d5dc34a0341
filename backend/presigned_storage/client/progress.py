"""
Upload progress aggregation.

Part tasks never touch shared counters. Each one posts
(part_number, bytes_sent) messages to a queue, and a single consumer
task folds them into a snapshot of last-known byte counts per part.
The overall percentage is recomputed from that snapshot on every message.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
ProgressMessage = Optional[Tuple[int, int]]


class ProgressAggregator:
    """
    Overall progress of a multi-part transfer as an integer percentage.

    Guarantees:
    - a part's byte count never decreases and never exceeds the part size,
      so late, repeated or out-of-order reports cannot double-count
    - the percentage is floored, so it reaches 100 only when every part
      has reported its full size
    - the callback fires only when the percentage goes up
    """

    def __init__(self, part_sizes: Dict[int, int], callback: Optional[ProgressCallback] = None):
        self._sizes = dict(part_sizes)
        self._sent = {part: 0 for part in self._sizes}
        self._total = sum(self._sizes.values())
        self._callback = callback
        self._last_reported = -1

    @property
    def bytes_sent(self) -> int:
        return sum(self._sent.values())

    @property
    def percent(self) -> int:
        if self._total == 0:
            return 100
        return self.bytes_sent * 100 // self._total

    def update(self, part_number: int, bytes_sent: int) -> int:
        """
        Record the latest byte count reported for one part.

        Returns:
            The overall percentage after the update
        """
        if part_number not in self._sizes:
            raise KeyError(f"Unknown part {part_number}")

        clamped = min(max(bytes_sent, 0), self._sizes[part_number])
        if clamped > self._sent[part_number]:
            self._sent[part_number] = clamped

        percent = self.percent
        if percent > self._last_reported:
            self._last_reported = percent
            if self._callback:
                self._callback(percent)
        return percent

    async def consume(self, queue: "asyncio.Queue[ProgressMessage]") -> int:
        """
        Apply queued progress messages until a None sentinel arrives.

        Returns:
            The final percentage
        """
        while True:
            message = await queue.get()
            if message is None:
                return self.percent
            part_number, bytes_sent = message
            self.update(part_number, bytes_sent)
