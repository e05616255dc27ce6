"""
Reading of valgrind-style memory traces, one access per line:

    I 0400d7d4,8
     L 7ff0005b8,8
     S 7ff0005b0,4
     M 0421c7f0,4

Instruction fetches (I) are skipped; loads, stores and modifies become
Operations.
"""

import enum
import os
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Union

from cache import ADDRESS_LIMIT

IGNORED_KINDS = {"I"}

ADDRESS_PATTERN = re.compile(r"(?:0[xX])?([0-9a-fA-F]+)")
SIZE_PATTERN = re.compile(r"[0-9]+")


class MalformedOperation(ValueError):
    def __init__(self, message: str, line_number: Optional[int] = None, line: str = ""):
        self.line_number = line_number
        self.line = line
        if line_number is not None:
            message = f"line {line_number}: {message}: {line!r}"
        super().__init__(message)


class OpKind(enum.Enum):
    LOAD = "L"
    STORE = "S"
    MODIFY = "M"


@dataclass(frozen=True)
class Operation:
    kind: OpKind
    address: int
    size: int = 0
    text: str = ""


def parse_trace_line(line: str, line_number: Optional[int] = None) -> Optional[Operation]:
    """
    Parses one trace line.

    Args:
        line (str): Raw line, with or without the trailing newline.
        line_number (int, optional): Used in error messages.
    Returns:
        Operation or None: None for blank lines and instruction fetches.
    Raises:
        MalformedOperation: If the line is not `<kind> <hex-address>,<size>`.
    """
    text = line.strip()
    if not text:
        return None

    fields = text.split(None, 1)
    letter = fields[0]
    if letter in IGNORED_KINDS:
        return None
    try:
        kind = OpKind(letter)
    except ValueError:
        raise MalformedOperation(f"unknown operation {letter!r}", line_number, text) from None

    if len(fields) != 2:
        raise MalformedOperation("missing address", line_number, text)

    address_field, _, size_field = fields[1].partition(",")
    match = ADDRESS_PATTERN.fullmatch(address_field.strip())
    if match is None:
        raise MalformedOperation("bad address", line_number, text)
    address = int(match.group(1), 16)
    if address >= ADDRESS_LIMIT:
        raise MalformedOperation("address does not fit in 64 bits", line_number, text)

    size = 0
    size_field = size_field.strip()
    if size_field:
        if SIZE_PATTERN.fullmatch(size_field) is None:
            raise MalformedOperation("bad size", line_number, text)
        size = int(size_field)

    return Operation(kind=kind, address=address, size=size, text=text)


def read_trace(source: Union[str, os.PathLike, Iterable[str]]) -> Iterator[Operation]:
    """
    Yields the operations of a trace file, or of an iterable of lines.
    """
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            yield from _parse_lines(_decode_lines(f))
    else:
        yield from _parse_lines(source)


def _decode_lines(raw_lines: Iterable[bytes]) -> Iterator[str]:
    for line_number, raw in enumerate(raw_lines, start=1):
        try:
            line = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="replace").strip()
            raise MalformedOperation("not valid UTF-8", line_number, text) from None
        yield line


def _parse_lines(lines: Iterable[str]) -> Iterator[Operation]:
    for line_number, line in enumerate(lines, start=1):
        operation = parse_trace_line(line, line_number)
        if operation is not None:
            yield operation
