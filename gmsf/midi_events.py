#!/usr/bin/env python3
"""
MIDI event encoding for GMSF conversion.
Variable-length quantities, channel-voice events and meta events, each rendered
as raw bytes prefixed by a delta-time.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Tuple


# Largest value a 4-byte MIDI variable-length quantity can hold
VLQ_MAX = 0x0FFFFFFF

NOTE_ON_VELOCITY = 64
MICROSECONDS_PER_MINUTE = 60_000_000


def encode_vlq(value: int) -> bytes:
    """Encode a non-negative integer as a MIDI variable-length quantity.

    Base-128 digits, most significant first; every byte but the last has
    bit 7 set.
    """
    if value < 0 or value > VLQ_MAX:
        raise ValueError(f"VLQ value out of range: {value}")

    digits = [value & 0x7F]
    value >>= 7
    while value:
        digits.append((value & 0x7F) | 0x80)
        value >>= 7
    digits.reverse()
    return bytes(digits)


def decode_vlq(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a variable-length quantity.

    Args:
        data: Buffer holding the quantity
        offset: Offset of its first byte

    Returns:
        Tuple of (value, offset just past the quantity)
    """
    value = 0
    for i in range(4):
        if offset + i >= len(data):
            raise ValueError(f"Truncated VLQ at offset {offset}")
        byte = data[offset + i]
        value = (value << 7) | (byte & 0x7F)
        if not byte & 0x80:
            return value, offset + i + 1
    raise ValueError(f"VLQ longer than 4 bytes at offset {offset}")


class MidiEventType(Enum):
    """Channel-voice events, keyed by status nibble."""
    NOTE_OFF = 0x80
    NOTE_ON = 0x90
    PROGRAM_CHANGE = 0xC0


class MetaEventType(Enum):
    """Meta events, keyed by meta type byte."""
    TRACK_NAME = 0x03
    CHANNEL_PREFIX = 0x20
    END_OF_TRACK = 0x2F
    SET_TEMPO = 0x51


@dataclass
class MidiEvent:
    """A channel-voice event. The channel is supplied when encoding."""
    type: MidiEventType
    data: int  # Pitch for note events, patch for program changes

    def encode(self, delta: int, channel: int) -> bytes:
        """Render as VLQ(delta) followed by the event bytes."""
        if not 0 <= channel <= 15:
            raise ValueError(f"MIDI channel out of range: {channel}")
        status = self.type.value | channel
        if self.type == MidiEventType.NOTE_OFF:
            body = bytes((status, self.data, 0))
        elif self.type == MidiEventType.NOTE_ON:
            body = bytes((status, self.data, NOTE_ON_VELOCITY))
        else:
            body = bytes((status, self.data))
        return encode_vlq(delta) + body


@dataclass
class MetaEvent:
    """A meta event with its already-decoded payload."""
    type: MetaEventType
    text: str = ''
    value: int = 0  # Channel for CHANNEL_PREFIX, BPM for SET_TEMPO

    def payload(self) -> bytes:
        if self.type == MetaEventType.TRACK_NAME:
            raw = self.text.encode('utf-8')
            if len(raw) > 0xFF:
                raise ValueError(f"Track name too long ({len(raw)} bytes): {self.text!r}")
            return raw
        if self.type == MetaEventType.CHANNEL_PREFIX:
            return bytes((self.value,))
        if self.type == MetaEventType.SET_TEMPO:
            # Microseconds per quarter note, low 3 bytes big-endian
            usec = MICROSECONDS_PER_MINUTE // self.value
            return struct.pack('>I', usec & 0xFFFFFFFF)[1:]
        return b''

    def encode(self, delta: int) -> bytes:
        """Render as VLQ(delta) FF <type> <len> <payload>."""
        payload = self.payload()
        return encode_vlq(delta) + bytes((0xFF, self.type.value, len(payload))) + payload


# Factory functions mirroring the event vocabulary

def note_off(pitch: int) -> MidiEvent:
    return MidiEvent(type=MidiEventType.NOTE_OFF, data=pitch)


def note_on(pitch: int) -> MidiEvent:
    return MidiEvent(type=MidiEventType.NOTE_ON, data=pitch)


def program_change(patch: int) -> MidiEvent:
    return MidiEvent(type=MidiEventType.PROGRAM_CHANGE, data=patch)


def track_name(name: str) -> MetaEvent:
    return MetaEvent(type=MetaEventType.TRACK_NAME, text=name)


def channel_prefix(channel: int) -> MetaEvent:
    return MetaEvent(type=MetaEventType.CHANNEL_PREFIX, value=channel)


def set_tempo(bpm: int) -> MetaEvent:
    """Tempo meta event. A BPM of 0 fails with ZeroDivisionError on encode."""
    return MetaEvent(type=MetaEventType.SET_TEMPO, value=bpm)


def end_of_track() -> MetaEvent:
    return MetaEvent(type=MetaEventType.END_OF_TRACK)
