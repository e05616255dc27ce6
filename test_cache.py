import pytest
import numpy as np

from cache import (
    ADDRESS_LIMIT,
    CacheConfig,
    InvalidConfiguration,
    LineTable,
    RecencyTracker,
    decode_address,
    encode_address,
)

ALL_ONES = ADDRESS_LIMIT - 1


#
# ——— CONFIG TESTS ———
#

def test_config_derived_sizes():
    config = CacheConfig(set_index_bits=4, lines_per_set=2, block_offset_bits=5)
    assert config.num_sets == 16
    assert config.block_size == 32
    assert config.tag_bits == 64 - 4 - 5

def test_config_allows_zero_bit_widths():
    config = CacheConfig(set_index_bits=0, lines_per_set=1, block_offset_bits=0)
    assert config.num_sets == 1
    assert config.block_size == 1

@pytest.mark.parametrize("s, E, b", [
    (-1, 1, 1),
    (1, 0, 1),
    (1, -3, 1),
    (1, 1, -1),
    (40, 1, 25),
    (1.0, 1, 1),
    (1, True, 1),
    (1, 1, "4"),
])
def test_config_invalid(s, E, b):
    with pytest.raises(InvalidConfiguration):
        CacheConfig(set_index_bits=s, lines_per_set=E, block_offset_bits=b)

def test_config_is_immutable():
    config = CacheConfig(1, 1, 1)
    with pytest.raises(AttributeError):
        config.lines_per_set = 4


#
# ——— ADDRESS DECODER TESTS ———
#

def test_decode_address_bit_fields():
    # 4 tag bits | 2 set bits | 2 offset bits
    config = CacheConfig(set_index_bits=2, lines_per_set=1, block_offset_bits=2)
    tag, set_index, offset = decode_address(0b10110111, config)
    assert tag == 0b1011
    assert set_index == 0b01
    assert offset == 0b11

@pytest.mark.parametrize("address, expected", [
    (0x10, (4, 0, 0)),
    (0x20, (8, 0, 0)),
    (0x22, (8, 1, 0)),
    (0x13, (4, 1, 1)),
])
def test_decode_address_small_geometry(address, expected):
    config = CacheConfig(set_index_bits=1, lines_per_set=1, block_offset_bits=1)
    assert decode_address(address, config) == expected

def test_decode_address_zero_widths_is_identity():
    config = CacheConfig(set_index_bits=0, lines_per_set=1, block_offset_bits=0)
    assert decode_address(0xdeadbeef, config) == (0xdeadbeef, 0, 0)
    assert decode_address(ALL_ONES, config) == (ALL_ONES, 0, 0)

def test_decode_address_full_width_leaves_no_tag():
    config = CacheConfig(set_index_bits=32, lines_per_set=1, block_offset_bits=32)
    assert decode_address(ALL_ONES, config) == (0, 2**32 - 1, 2**32 - 1)

@pytest.mark.parametrize("s, b", [(1, 1), (4, 4), (0, 6), (10, 0), (20, 12)])
@pytest.mark.parametrize("address", [0, 1, 0x7ff000388, 0x0421c7f0, ALL_ONES])
def test_decode_then_encode_restores_address(s, b, address):
    config = CacheConfig(set_index_bits=s, lines_per_set=2, block_offset_bits=b)
    tag, set_index, offset = decode_address(address, config)
    assert set_index < config.num_sets
    assert offset < config.block_size
    assert encode_address(tag, set_index, offset, config) == address

@pytest.mark.parametrize("address", [-1, ADDRESS_LIMIT])
def test_decode_address_out_of_bounds(address):
    config = CacheConfig(1, 1, 1)
    with pytest.raises(AssertionError):
        decode_address(address, config)


#
# ——— LINE TABLE TESTS ———
#

def test_line_table_starts_invalid():
    table = LineTable(num_sets=4, lines_per_set=2)
    assert table.tags.shape == (4, 2)
    assert not table.valid_bits.any()
    # tag 0 is stored in every slot but none of them is valid
    assert table.find_valid_line(0, 0) is None
    assert table.find_empty_slot(3) == 0

def test_line_table_write_and_find():
    table = LineTable(num_sets=2, lines_per_set=3)
    table.write_line(1, 0, 7)
    assert table.find_valid_line(1, 7) == 0
    assert table.find_valid_line(0, 7) is None
    assert table.find_empty_slot(1) == 1
    assert table.valid_count(1) == 1

    table.write_line(1, 1, 8)
    table.write_line(1, 2, 9)
    assert table.find_empty_slot(1) is None
    assert table.find_valid_line(1, 9) == 2
    assert table.find_line_with_tag(1, 8) == 1
    assert table.valid_count(1) == 3

def test_line_table_all_ones_tag():
    table = LineTable(num_sets=1, lines_per_set=2)
    table.write_line(0, 1, ALL_ONES)
    assert table.find_valid_line(0, ALL_ONES) == 1
    assert int(table.tags[0, 1]) == ALL_ONES

def test_line_table_overwrite_keeps_line_valid():
    table = LineTable(num_sets=1, lines_per_set=1)
    table.write_line(0, 0, 3)
    table.write_line(0, 0, 4)
    assert table.find_valid_line(0, 3) is None
    assert table.find_valid_line(0, 4) == 0
    assert table.valid_bits[0, 0]

@pytest.mark.parametrize("set_index, slot", [(-1, 0), (2, 0), (0, 2), (0, -1)])
def test_line_table_bounds(set_index, slot):
    table = LineTable(num_sets=2, lines_per_set=2)
    with pytest.raises(AssertionError):
        table.write_line(set_index, slot, 1)

def test_line_table_reset():
    table = LineTable(num_sets=2, lines_per_set=2)
    table.write_line(0, 0, 5)
    table.write_line(1, 1, 6)
    table.reset()
    assert not table.valid_bits.any()
    assert np.all(table.tags == 0)


#
# ——— RECENCY TRACKER TESTS ———
#

@pytest.fixture
def tracker():
    return RecencyTracker(num_sets=2, lines_per_set=4)

def test_recency_fills_front_first(tracker):
    tracker.touch(0, 1)
    assert tracker.entries(0) == [1, None, None, None]
    tracker.touch(0, 2)
    tracker.touch(0, 3)
    assert tracker.entries(0) == [3, 2, 1, None]
    assert tracker.eviction_candidate(0) is None
    # the other set is untouched
    assert tracker.entries(1) == [None] * 4

def test_recency_move_to_front(tracker):
    for tag in (1, 2, 3, 4):
        tracker.touch(0, tag)
    assert tracker.entries(0) == [4, 3, 2, 1]
    assert tracker.eviction_candidate(0) == 1

    tracker.touch(0, 2)
    assert tracker.entries(0) == [2, 4, 3, 1]

    tracker.touch(0, 2)
    assert tracker.entries(0) == [2, 4, 3, 1]

    tracker.touch(0, 1)
    assert tracker.entries(0) == [1, 2, 4, 3]
    assert tracker.eviction_candidate(0) == 3

def test_recency_unknown_tag_displaces_last(tracker):
    for tag in (1, 2, 3, 4):
        tracker.touch(0, tag)
    tracker.touch(0, 5)
    assert tracker.entries(0) == [5, 4, 3, 2]

def test_recency_duplicate_relocates_last_occurrence(tracker):
    tracker.order[0] = [7, 8, 7, 9]
    tracker.occupied[0] = True
    tracker.touch(0, 7)
    assert tracker.entries(0) == [7, 7, 8, 9]

def test_recency_empty_slots_never_match(tracker):
    # unused slots hold 0 in the order array
    tracker.touch(0, 0)
    assert tracker.entries(0) == [0, None, None, None]
    tracker.touch(0, 0)
    assert tracker.entries(0) == [0, None, None, None]

def test_recency_all_ones_tag_is_not_empty():
    tracker = RecencyTracker(num_sets=1, lines_per_set=2)
    tracker.touch(0, ALL_ONES)
    assert tracker.entries(0) == [ALL_ONES, None]
    assert tracker.eviction_candidate(0) is None
    tracker.touch(0, 1)
    assert tracker.eviction_candidate(0) == ALL_ONES

def test_recency_direct_mapped():
    tracker = RecencyTracker(num_sets=1, lines_per_set=1)
    tracker.touch(0, 3)
    assert tracker.eviction_candidate(0) == 3
    tracker.touch(0, 4)
    assert tracker.entries(0) == [4]

def test_recency_reset(tracker):
    tracker.touch(1, 5)
    tracker.reset()
    assert tracker.entries(1) == [None] * 4
    assert not tracker.occupied.any()
