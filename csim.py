"""
This script simulates a set-associative LRU cache over a memory trace and
prints the resulting hit, miss and eviction counts.
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

from cache import CacheConfig, InvalidConfiguration
from logging_config import setup_logging
from simulator import CacheSimulator, Outcome, format_summary
from tracefile import MalformedOperation, Operation, read_trace

logger = logging.getLogger(__name__)

EXAMPLES = """\
Examples:
  linux>  csim -s 4 -E 1 -b 4 -t traces/yi.trace
  linux>  csim -v -s 8 -E 2 -b 4 -t traces/yi.trace
"""


def flag_int(value: str) -> int:
    # An unparsable number reads as 0, which main reports as a missing argument.
    try:
        return int(value)
    except ValueError:
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csim",
        description="Simulate a set-associative cache with LRU replacement over a memory trace.",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v", help="Optional verbose flag.", action="store_true"
    )

    parser.add_argument(
        "-s", help="Number of set index bits.", type=flag_int, default=0, metavar="<num>"
    )

    parser.add_argument(
        "-E", help="Number of lines per set.", type=flag_int, default=0, metavar="<num>"
    )

    parser.add_argument(
        "-b", help="Number of block offset bits.", type=flag_int, default=0, metavar="<num>"
    )

    parser.add_argument(
        "-t", help="Trace file.", type=str, default=None, metavar="<file>"
    )

    parser.add_argument(
        "--debug", help="Log placements and evictions, and dump the cache at the end.", action="store_true"
    )

    return parser


def print_event(operation: Operation, outcomes: Tuple[Outcome, ...]) -> None:
    print(f"{operation.text} {' '.join(outcome.value for outcome in outcomes)}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.WARNING)

    # Zero means the flag was never given.
    if args.s <= 0 or args.E <= 0 or args.b <= 0:
        print(f"{parser.prog}: Missing required command line argument")
        parser.print_help()
        return 1

    try:
        config = CacheConfig(set_index_bits=args.s, lines_per_set=args.E, block_offset_bits=args.b)
    except InvalidConfiguration as e:
        print(f"{parser.prog}: {e}")
        parser.print_help()
        return 1

    logger.info("simulating %d sets x %d lines, %d-byte blocks",
                config.num_sets, config.lines_per_set, config.block_size)

    try:
        simulator = CacheSimulator(config)
    except (MemoryError, ValueError) as e:
        # numpy raises MemoryError when allocation fails and ValueError past its size limit
        logger.error("cache of %d sets x %d lines is too large to allocate: %s",
                     config.num_sets, config.lines_per_set, e)
        return 1

    operations = read_trace(args.t) if args.t is not None else []
    try:
        summary = simulator.run(operations, on_event=print_event if args.v else None)
    except MalformedOperation as e:
        logger.error("malformed trace: %s", e)
        return 1
    except OSError as e:
        logger.error("cannot read trace file %s: %s", args.t, e)
        return 1

    if args.debug:
        logger.debug("final cache state:\n%s", simulator.dump())

    print(format_summary(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
