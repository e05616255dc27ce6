"""
This file implements the CacheSimulator class, which runs load, store and
modify operations against a LineTable and RecencyTracker and counts hits,
misses and evictions.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from cache import CacheConfig, LineTable, RecencyTracker, decode_address, encode_address
from tracefile import Operation, OpKind

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    HIT = "hit"
    MISS = "miss"
    EVICTION = "eviction"


@dataclass(frozen=True)
class Summary:
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def accesses(self) -> int:
        return self.hits + self.misses


def format_summary(summary: Summary) -> str:
    return f"hits:{summary.hits} misses:{summary.misses} evictions:{summary.evictions}"


class CacheSimulator:
    def __init__(self, config: CacheConfig):
        self.config = config

        self.lines = LineTable(config.num_sets, config.lines_per_set)
        self.recency = RecencyTracker(config.num_sets, config.lines_per_set)

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def load(self, address: int) -> Tuple[Outcome, ...]:
        """
        Simulate a load.

        Args:
            address (int): The address to load from.
        Returns:
            tuple[Outcome, ...]: (HIT,), (MISS,) or (MISS, EVICTION).
        """
        tag, set_index, _ = decode_address(address, self.config)

        if self.lines.find_valid_line(set_index, tag) is not None:
            self.hits += 1
            self.recency.touch(set_index, tag)
            return (Outcome.HIT,)

        self.misses += 1
        if self._place(address):
            return (Outcome.MISS,)
        return (Outcome.MISS, Outcome.EVICTION)

    def store(self, address: int) -> Tuple[Outcome, ...]:
        """
        Simulate a store. Without block contents a store behaves exactly like
        a load.
        """
        return self.load(address)

    def modify(self, address: int) -> Tuple[Outcome, ...]:
        """
        Simulate a modify: a load followed by a store to the same address.
        The store always hits.
        """
        return self.load(address) + self.store(address)

    def _place(self, address: int) -> bool:
        """
        Put the address's tag into its set after a miss.

        Returns:
            bool: True if an empty line was used, False if a line was evicted.
        """
        tag, set_index, _ = decode_address(address, self.config)

        slot = self.lines.find_empty_slot(set_index)
        if slot is not None:
            self.lines.write_line(set_index, slot, tag)
            self.recency.touch(set_index, tag)
            logger.debug("placed tag %#x in set %d slot %d", tag, set_index, slot)
            return True

        self._evict(tag, set_index)
        return False

    def _evict(self, tag: int, set_index: int) -> None:
        victim_tag = self.recency.eviction_candidate(set_index)
        assert victim_tag is not None, "Full set has no eviction candidate"

        slot = self.lines.find_line_with_tag(set_index, victim_tag)
        assert slot is not None, "Eviction candidate is not in the line table"

        self.lines.write_line(set_index, slot, tag)
        self.recency.touch(set_index, tag)
        self.evictions += 1
        logger.debug("evicted tag %#x from set %d slot %d for tag %#x",
                     victim_tag, set_index, slot, tag)

    def execute(self, operation: Operation) -> Tuple[Outcome, ...]:
        if operation.kind is OpKind.LOAD:
            return self.load(operation.address)
        if operation.kind is OpKind.STORE:
            return self.store(operation.address)
        if operation.kind is OpKind.MODIFY:
            return self.modify(operation.address)
        raise ValueError(f"Unknown operation kind: {operation.kind!r}")

    def run(
                self,
                operations: Iterable[Operation],
                on_event: Optional[Callable[[Operation, Tuple[Outcome, ...]], None]] = None
            ) -> Summary:
        """
        Process every operation in order and return the counters.

        Args:
            operations (Iterable[Operation]): The operation stream, drained fully.
            on_event (callable, optional): Called with each operation and its outcomes.
        Returns:
            Summary: hits, misses and evictions after the last operation.
        """
        for operation in operations:
            outcomes = self.execute(operation)
            if on_event is not None:
                on_event(operation, outcomes)
        return self.summary()

    def summary(self) -> Summary:
        return Summary(hits=self.hits, misses=self.misses, evictions=self.evictions)

    def reset(self) -> None:
        """
        Resets the cache contents and the counters.
        """
        self.lines.reset()
        self.recency.reset()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def dump(self) -> str:
        """
        Text rendering of every set: its lines (valid bit, tag and, for valid
        lines, the block's base address) followed by its recency list, most
        recent first.
        """
        rows = []
        for set_index in range(self.config.num_sets):
            filled = self.lines.valid_count(set_index)
            rows.append(f"Set {set_index}: {filled}/{self.config.lines_per_set} valid")
            for slot in range(self.config.lines_per_set):
                valid = int(self.lines.valid_bits[set_index, slot])
                tag = int(self.lines.tags[set_index, slot])
                row = f"  Line {slot} valid: {valid} tag: {tag:#x}"
                if valid:
                    block = encode_address(tag, set_index, 0, self.config)
                    row += f" block: {block:#x}"
                rows.append(row)
            recency = " ".join(
                "-" if tag is None else f"{tag:#x}" for tag in self.recency.entries(set_index)
            )
            rows.append(f"  LRU: {recency}")
        return "\n".join(rows)
