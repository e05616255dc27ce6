"""
This module implements the storage side of a set-associative cache: address
decoding, the line table holding tags and valid bits, and the per-set LRU
recency lists.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

ADDRESS_BITS = 64
ADDRESS_LIMIT = 1 << ADDRESS_BITS


class InvalidConfiguration(ValueError):
    """Raised when the cache geometry cannot be simulated."""


@dataclass(frozen=True)
class CacheConfig:
    set_index_bits: int
    lines_per_set: int
    block_offset_bits: int

    def __post_init__(self):
        for name in ("set_index_bits", "lines_per_set", "block_offset_bits"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
        if self.set_index_bits < 0:
            raise InvalidConfiguration("set_index_bits must be non-negative")
        if self.block_offset_bits < 0:
            raise InvalidConfiguration("block_offset_bits must be non-negative")
        if self.lines_per_set < 1:
            raise InvalidConfiguration("lines_per_set must be at least 1")
        if self.set_index_bits + self.block_offset_bits > ADDRESS_BITS:
            raise InvalidConfiguration(
                f"set_index_bits + block_offset_bits must not exceed {ADDRESS_BITS}"
            )

    @property
    def num_sets(self) -> int:
        return 1 << self.set_index_bits

    @property
    def block_size(self) -> int:
        return 1 << self.block_offset_bits

    @property
    def tag_bits(self) -> int:
        return ADDRESS_BITS - self.set_index_bits - self.block_offset_bits


def decode_address(address: int, config: CacheConfig) -> Tuple[int, int, int]:
    """
    Splits the address into tag, set index, and offset.

    Args:
        address (int): 64-bit unsigned address.
        config (CacheConfig): Geometry giving the set and offset widths.

    Returns:
        tuple[int, int, int]: (tag, set_index, offset)
    """
    assert 0 <= address < ADDRESS_LIMIT, "Address out of bounds"

    offset = address & (config.block_size - 1)
    block = address >> config.block_offset_bits
    set_index = block & (config.num_sets - 1)
    tag = block >> config.set_index_bits

    return tag, set_index, offset


def encode_address(tag: int, set_index: int, offset: int, config: CacheConfig) -> int:
    """
    Rebuilds an address from its tag, set index, and offset.
    """
    return ((tag << config.set_index_bits) | set_index) << config.block_offset_bits | offset


class LineTable:
    def __init__(self, num_sets: int, lines_per_set: int):
        """
        Allocates num_sets x lines_per_set lines, all invalid.

        Args:
            num_sets (int): Number of sets in the cache.
            lines_per_set (int): Associativity of the cache.
        """
        assert num_sets > 0, "Number of sets must be greater than 0"
        assert lines_per_set > 0, "Lines per set must be greater than 0"

        self.num_sets = num_sets
        self.lines_per_set = lines_per_set

        self.tags = np.zeros((num_sets, lines_per_set), dtype=np.uint64)
        self.valid_bits = np.zeros((num_sets, lines_per_set), dtype=np.bool_)

    def _check_set(self, set_index: int) -> None:
        assert 0 <= set_index < self.num_sets, "Set index out of bounds"

    def find_valid_line(self, set_index: int, tag: int) -> Optional[int]:
        """
        Returns the slot of the first valid line in the set holding the tag,
        or None on a miss.
        """
        self._check_set(set_index)

        tag_check = self.valid_bits[set_index] & (self.tags[set_index] == np.uint64(tag))
        slot = int(np.argmax(tag_check))
        if tag_check[slot]:
            return slot
        return None

    def find_empty_slot(self, set_index: int) -> Optional[int]:
        """
        Returns the first invalid slot in the set, or None when the set is full.
        """
        self._check_set(set_index)

        empty_check = ~self.valid_bits[set_index]
        slot = int(np.argmax(empty_check))
        if empty_check[slot]:
            return slot
        return None

    def find_line_with_tag(self, set_index: int, tag: int) -> Optional[int]:
        # Eviction lookups match on the tag alone; the set is full at that point.
        self._check_set(set_index)

        tag_check = self.tags[set_index] == np.uint64(tag)
        slot = int(np.argmax(tag_check))
        if tag_check[slot]:
            return slot
        return None

    def write_line(self, set_index: int, slot: int, tag: int) -> None:
        self._check_set(set_index)
        assert 0 <= slot < self.lines_per_set, "Slot out of bounds"

        self.tags[set_index, slot] = np.uint64(tag)
        self.valid_bits[set_index, slot] = True

    def valid_count(self, set_index: int) -> int:
        self._check_set(set_index)
        return int(np.count_nonzero(self.valid_bits[set_index]))

    def reset(self) -> None:
        self.tags.fill(0)
        self.valid_bits.fill(False)


class RecencyTracker:
    """
    Per-set LRU lists, most recently used tag at index 0 and the eviction
    candidate at index lines_per_set - 1.

    An empty slot is marked in ``occupied`` rather than with a reserved tag
    value, so every 64-bit tag is representable.
    """

    def __init__(self, num_sets: int, lines_per_set: int):
        assert num_sets > 0, "Number of sets must be greater than 0"
        assert lines_per_set > 0, "Lines per set must be greater than 0"

        self.num_sets = num_sets
        self.lines_per_set = lines_per_set

        self.order = np.zeros((num_sets, lines_per_set), dtype=np.uint64)
        self.occupied = np.zeros((num_sets, lines_per_set), dtype=np.bool_)

    def touch(self, set_index: int, tag: int) -> None:
        """
        Moves the tag to the front of the set's list.

        The list is scanned from the back, so of two equal entries the later
        one is relocated. A tag not in the list displaces the last slot.

        Args:
            set_index (int): Set whose list is updated.
            tag (int): Tag just hit or placed.
        """
        assert 0 <= set_index < self.num_sets, "Set index out of bounds"

        order = self.order[set_index]
        occupied = self.occupied[set_index]

        position = self.lines_per_set - 1
        for t in range(self.lines_per_set - 1, -1, -1):
            if occupied[t] and int(order[t]) == tag:
                position = t
                break

        if position > 0:
            order[1:position + 1] = order[:position].copy()
            occupied[1:position + 1] = occupied[:position].copy()

        order[0] = np.uint64(tag)
        occupied[0] = True

    def eviction_candidate(self, set_index: int) -> Optional[int]:
        """
        Returns the least recently used tag of the set, or None if the last
        slot has never been filled.
        """
        assert 0 <= set_index < self.num_sets, "Set index out of bounds"

        last = self.lines_per_set - 1
        if not self.occupied[set_index, last]:
            return None
        return int(self.order[set_index, last])

    def entries(self, set_index: int) -> List[Optional[int]]:
        """Most recent first; None marks an empty slot."""
        return [
            int(tag) if used else None
            for tag, used in zip(self.order[set_index], self.occupied[set_index])
        ]

    def reset(self) -> None:
        self.order.fill(0)
        self.occupied.fill(False)
