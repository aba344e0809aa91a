"""
GMSF grid decoder.
Reads the binary sheet, validates the header and builds the per-channel
piano-roll plus the raw repeat markers found while scanning the grid.
"""

import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Set, Tuple, Union

from format_base import (
    MalformedHeaderError, TruncatedInputError, SheetConfig, SheetType,
)
from repeat_resolver import RepeatMarker


GMSF_MAGIC = b'GMSF'

# magic, version, audiogear marker ID, tempo (BPM), width, height
HEADER_FORMAT = '<4sBBHHH'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

AUDIOGEAR_SLOTS = 5


@dataclass
class GmsfHeader:
    version: int
    audiogear_id: int
    bpm: int
    width: int
    height: int


@dataclass
class AudiogearCell:
    """Composite cell: up to five (symbol, row) placements and a volume."""
    slots: List[Tuple[int, int]]
    volume: int


@dataclass
class GmsfDocument:
    """A decoded GMSF sheet.

    `piano_roll` maps each channel to `width` sets of pitches.
    `repeat_markers` holds, per column, one raw marker for every row that had
    a RepeatEnd in that column.
    """
    header: GmsfHeader
    piano_roll: Dict[int, List[Set[int]]] = field(default_factory=dict)
    repeat_markers: List[List[RepeatMarker]] = field(default_factory=list)
    cells: List[List[int]] = field(default_factory=list)  # Raw IDs, row-major
    audiogear_cells: Dict[Tuple[int, int], AudiogearCell] = field(default_factory=dict)  # (x, y) -> cell

    @property
    def width(self) -> int:
        return self.header.width

    @property
    def height(self) -> int:
        return self.header.height


class GmsfReader:
    """Decodes GMSF data against a sheet configuration."""

    def __init__(self, config: SheetConfig):
        self.config = config

    def read_file(self, path: Union[str, Path]) -> GmsfDocument:
        """Load and decode a GMSF file."""
        with open(path, 'rb') as f:
            data = f.read()
        return self.read(data)

    def read(self, data: bytes) -> GmsfDocument:
        """Decode GMSF data held in memory.

        Raises:
            MalformedHeaderError: Bad magic or zero tempo
            TruncatedInputError: Data ends before the grid is complete
            SheetRangeError: A pitched symbol sits outside the pitch tables
        """
        header = self.parse_header(data)
        doc = GmsfDocument(
            header=header,
            repeat_markers=[[] for _ in range(header.width)],
        )

        offset = HEADER_SIZE
        for y in range(header.height):
            repeat_begins: List[int] = []  # Open RepeatBegin columns, never popped
            row: List[int] = []
            for x in range(header.width):
                symbol_id = self._read_byte(data, offset)
                offset += 1
                row.append(symbol_id)
                if symbol_id == 0:
                    continue

                if symbol_id == header.audiogear_id:
                    offset = self._read_audiogear_cell(data, offset, doc, x, y)
                    continue

                symbol = self.config.get_symbol(symbol_id)
                if symbol is None:
                    continue
                if symbol.is_pitched():
                    self._add_note(doc, symbol.channel_and_pitch(y), x)
                elif symbol.type == SheetType.REPEAT_BEGIN:
                    repeat_begins.append(x)
                elif symbol.type == SheetType.REPEAT_END:
                    start = repeat_begins[-1] if repeat_begins else 0
                    doc.repeat_markers[x].append(RepeatMarker(start_pos=start, row=y))
            doc.cells.append(row)

        return doc

    def parse_header(self, data: bytes) -> GmsfHeader:
        """Parse and validate the fixed-size header."""
        if len(data) < len(GMSF_MAGIC):
            raise TruncatedInputError(f"File too short for GMSF magic ({len(data)} bytes)")
        if data[:len(GMSF_MAGIC)] != GMSF_MAGIC:
            raise MalformedHeaderError(f"Invalid GMSF magic: {data[:len(GMSF_MAGIC)]!r}")
        if len(data) < HEADER_SIZE:
            raise TruncatedInputError(f"Header needs {HEADER_SIZE} bytes, got {len(data)}")

        _, version, audiogear_id, bpm, width, height = struct.unpack_from(HEADER_FORMAT, data, 0)
        if bpm == 0:
            raise MalformedHeaderError("Tempo of 0 BPM")
        return GmsfHeader(version=version, audiogear_id=audiogear_id,
                          bpm=bpm, width=width, height=height)

    def _read_audiogear_cell(self, data: bytes, offset: int, doc: GmsfDocument,
                             x: int, y: int) -> int:
        """Decode a composite cell starting at `offset`, return offset after it."""
        slots = []
        for _ in range(AUDIOGEAR_SLOTS):
            inner_id = self._read_byte(data, offset)
            inner_row = self._read_byte(data, offset + 1)
            offset += 2
            slots.append((inner_id, inner_row))
            if inner_id == 0:
                continue
            symbol = self.config.get_symbol(inner_id)
            if symbol is not None and symbol.is_pitched():
                self._add_note(doc, symbol.channel_and_pitch(inner_row), x)

        # Volume isn't mapped to velocity yet
        volume = self._read_byte(data, offset)
        doc.audiogear_cells[(x, y)] = AudiogearCell(slots=slots, volume=volume)
        return offset + 1

    @staticmethod
    def _add_note(doc: GmsfDocument, channel_pitch: Tuple[int, int], x: int):
        channel, pitch = channel_pitch
        if channel not in doc.piano_roll:
            doc.piano_roll[channel] = [set() for _ in range(doc.width)]
        doc.piano_roll[channel][x].add(pitch)

    @staticmethod
    def _read_byte(data: bytes, offset: int) -> int:
        if offset >= len(data):
            raise TruncatedInputError(f"Unexpected end of data at offset 0x{offset:X}")
        return data[offset]
