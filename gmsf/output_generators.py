"""
Output generation for GMSF sheets.

Generates Standard MIDI Files and text grid dumps from decoded documents.
"""

import struct
from pathlib import Path
from typing import List, Optional, Set, Tuple

from format_base import TrackMapper, SheetConfig, SheetSymbol, SheetType
from format_gmsf import GmsfDocument
from midi_events import (
    note_on, note_off, program_change, track_name, set_tempo, end_of_track,
)
from repeat_resolver import RepeatAction, fresh_actions, resolve_repeats


# Ticks per quarter note; one grid column is a sixteenth
TICKS_PER_QUARTER = 96
TICKS_PER_COLUMN = TICKS_PER_QUARTER // 4

MIDI_FORMAT = 1
MAX_MIDI_CHANNEL = 15


def sequence_track(columns: List[Set[int]], actions: List[List[RepeatAction]],
                   channel: int, patch: int, name: str) -> bytes:
    """Walk one channel's piano-roll and render its MTrk body.

    Every column holds for TICKS_PER_COLUMN ticks. Notes of a column are
    released when the next column is entered. After each column its repeat
    actions are checked in order: the first one with uses left jumps back to
    its start column; exhausted ones are reset so an enclosing repeat can
    replay them.

    Args:
        columns: Pitch sets, one per grid column
        actions: Resolved repeat actions per column; counters are mutated
        channel: MIDI channel (0-15)
        patch: Program number sent at tick 0
        name: Track name meta event text

    Returns:
        Serialized track events, ending with End of Track
    """
    buffer = bytearray()
    buffer += track_name(name).encode(0)
    buffer += program_change(patch).encode(0, channel)

    current_time = 0
    last_time = 0
    held: List[int] = []

    x = 0
    width = len(columns)
    while x < width:
        for pitch in held:
            buffer += note_off(pitch).encode(current_time - last_time, channel)
            last_time = current_time
        held = []

        for pitch in sorted(columns[x]):
            buffer += note_on(pitch).encode(current_time - last_time, channel)
            last_time = current_time
            held.append(pitch)

        current_time += TICKS_PER_COLUMN

        jumped = False
        for action in actions[x]:
            if action.is_exhausted():
                action.use_counter = 0
            else:
                action.use_counter += 1
                x = action.start_pos
                jumped = True
                break
        if not jumped:
            x += 1

    buffer += end_of_track().encode(0)
    return bytes(buffer)


def write_chunk(chunk_type: bytes, body: bytes) -> bytes:
    """Wrap a chunk body with its 4-byte type and big-endian length."""
    return chunk_type + struct.pack('>I', len(body)) + body


class MidiGenerator:
    """Generates MIDI files from decoded GMSF documents."""

    def __init__(self, track_mapper: TrackMapper):
        """
        Args:
            track_mapper: Channel to track settings; unmapped channels are dropped
        """
        self.track_mapper = track_mapper

    def build_tracks(self, doc: GmsfDocument) -> List[Tuple[int, bytes]]:
        """Sequence every mapped channel, in ascending channel order.

        Returns:
            List of (channel, track body)
        """
        resolved = resolve_repeats(doc.repeat_markers)
        tracks = []
        for channel in sorted(doc.piano_roll.keys()):
            info = self.track_mapper.get_track_info(channel)
            if info is None:
                continue
            if channel > MAX_MIDI_CHANNEL:
                print(f"  WARNING: channel {channel} is not a MIDI channel (0-{MAX_MIDI_CHANNEL}), skipping track")
                continue

            body = sequence_track(
                doc.piano_roll[channel], fresh_actions(resolved),
                channel, info.patch, self.track_mapper.get_track_name(channel),
            )
            tracks.append((channel, body))
        return tracks

    def render(self, doc: GmsfDocument) -> bytes:
        """Serialize the whole Standard MIDI File to bytes."""
        tracks = self.build_tracks(doc)

        tempo_track = set_tempo(doc.header.bpm).encode(0) + end_of_track().encode(0)

        out = bytearray()
        out += write_chunk(b'MThd', struct.pack('>HHH', MIDI_FORMAT, len(tracks) + 1, TICKS_PER_QUARTER))
        out += write_chunk(b'MTrk', tempo_track)
        for _, body in tracks:
            out += write_chunk(b'MTrk', body)
        return bytes(out)

    def generate(self, doc: GmsfDocument, output_path: Path):
        """Write the MIDI file. A failed write leaves no file behind."""
        data = self.render(doc)
        try:
            with open(output_path, 'wb') as f:
                f.write(data)
        except OSError:
            output_path.unlink(missing_ok=True)
            raise


def dump_grid_to_text(doc: GmsfDocument, config: Optional[SheetConfig] = None) -> str:
    """Generate a text dump of a decoded sheet.

    Args:
        doc: Decoded document
        config: Optional configuration, used to label symbols

    Returns:
        Formatted dump: header, grid rows, composite cells, repeats, channels
    """
    header = doc.header
    output = []
    output.append(f"Version:    {header.version:02X}")
    output.append(f"Audiogear:  {header.audiogear_id:02X}")
    output.append(f"Tempo:      {header.bpm} BPM")
    output.append(f"Grid:       {header.width} x {header.height}")
    output.append("")

    output.append("Grid:")
    for y, row in enumerate(doc.cells):
        cells = ' '.join('..' if cell == 0 else f"{cell:02X}" for cell in row)
        output.append(f"  {y:2d}: {cells}")
    output.append("")

    if config is not None:
        used = sorted({cell for row in doc.cells for cell in row if cell})
        output.append("Symbols:")
        for symbol_id in used:
            if symbol_id == header.audiogear_id:
                label = "audiogear"
            else:
                symbol = config.get_symbol(symbol_id)
                label = _describe_symbol(symbol) if symbol else "unmapped"
            output.append(f"  {symbol_id:02X}: {label}")
        output.append("")

    if doc.audiogear_cells:
        output.append("Audiogear cells:")
        for (x, y), cell in sorted(doc.audiogear_cells.items(), key=lambda item: (item[0][1], item[0][0])):
            slots = ' '.join(f"{sid:02X}@{row}" for sid, row in cell.slots if sid)
            output.append(f"  ({x}, {y}): [{slots}] vol {cell.volume:02X}")
        output.append("")

    resolved = resolve_repeats(doc.repeat_markers)
    repeat_lines = []
    for x, actions in enumerate(resolved):
        for action in actions:
            repeat_lines.append(f"  col {x}: back to {action.start_pos} x{action.max_use}")
    if repeat_lines:
        output.append("Repeats:")
        output.extend(repeat_lines)
        output.append("")

    output.append("Channels:")
    for channel in sorted(doc.piano_roll.keys()):
        columns = doc.piano_roll[channel]
        note_count = sum(len(c) for c in columns)
        pitches = sorted(set().union(*columns))
        output.append(f"  {channel:2d}: {note_count} notes, pitches {pitches}")

    return '\n'.join(output)


def _describe_symbol(symbol: SheetSymbol) -> str:
    if symbol.type in (SheetType.NOTE, SheetType.LOW_NOTE):
        return f"{symbol.type.name.lower()} ch{symbol.channel} {symbol.accidental.value}"
    return symbol.type.name.lower()
