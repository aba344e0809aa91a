"""Tests for VLQ encoding and MIDI event rendering."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from midi_events import (
    VLQ_MAX, encode_vlq, decode_vlq,
    note_on, note_off, program_change, track_name, channel_prefix, set_tempo, end_of_track,
)


class TestVlq:

    @pytest.mark.parametrize("value, expected", [
        (0x00, b"\x00"),
        (0x40, b"\x40"),
        (0x7F, b"\x7F"),
        (0x80, b"\x81\x00"),
        (0x2000, b"\xC0\x00"),
        (0x3FFF, b"\xFF\x7F"),
        (0x4000, b"\x81\x80\x00"),
        (0x1FFFFF, b"\xFF\xFF\x7F"),
        (0x200000, b"\x81\x80\x80\x00"),
        (0x0FFFFFFF, b"\xFF\xFF\xFF\x7F"),
    ])
    def test_known_encodings(self, value, expected):
        """Reference values from the Standard MIDI File specification."""
        assert encode_vlq(value) == expected

    def test_round_trip_across_range(self):
        for value in list(range(0, 0x4100)) + [0x1FFFFF, 0x200000, 0x0FFFFFFE, VLQ_MAX]:
            decoded, end = decode_vlq(encode_vlq(value))
            assert decoded == value
            assert end == len(encode_vlq(value))

    def test_decode_at_offset(self):
        data = b"\x90" + encode_vlq(200) + b"\x3C"
        assert decode_vlq(data, 1) == (200, 3)

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            encode_vlq(-1)
        with pytest.raises(ValueError):
            encode_vlq(VLQ_MAX + 1)

    def test_decode_truncated(self):
        with pytest.raises(ValueError):
            decode_vlq(b"\x81\x80")


class TestChannelEvents:

    def test_note_on_fixed_velocity(self):
        assert note_on(60).encode(0, 0) == b"\x00\x90\x3C\x40"

    def test_note_off_zero_velocity(self):
        assert note_off(60).encode(24, 3) == b"\x18\x83\x3C\x00"

    def test_program_change(self):
        assert program_change(33).encode(0, 9) == b"\x00\xC9\x21"

    def test_long_delta(self):
        assert note_on(71).encode(0x80, 1) == b"\x81\x00\x91\x47\x40"

    def test_rejects_channel_above_15(self):
        with pytest.raises(ValueError):
            note_on(60).encode(0, 16)


class TestMetaEvents:

    def test_track_name(self):
        assert track_name("Lead").encode(0) == b"\x00\xFF\x03\x04Lead"

    def test_empty_track_name(self):
        assert track_name("").encode(0) == b"\x00\xFF\x03\x00"

    def test_track_name_length_is_one_byte(self):
        encoded = track_name("x" * 200).encode(0)
        assert encoded[:4] == b"\x00\xFF\x03\xC8"
        assert len(encoded) == 4 + 200

    def test_track_name_too_long(self):
        with pytest.raises(ValueError):
            track_name("x" * 256).encode(0)

    def test_channel_prefix(self):
        assert channel_prefix(9).encode(0) == b"\x00\xFF\x20\x01\x09"

    def test_set_tempo_120_bpm(self):
        # 500000 us per quarter
        assert set_tempo(120).encode(0) == b"\x00\xFF\x51\x03\x07\xA1\x20"

    def test_set_tempo_truncates_to_three_bytes(self):
        # 60000000 us = 0x03938700
        assert set_tempo(1).encode(0) == b"\x00\xFF\x51\x03\x93\x87\x00"

    def test_set_tempo_zero_bpm(self):
        with pytest.raises(ZeroDivisionError):
            set_tempo(0).encode(0)

    def test_end_of_track(self):
        assert end_of_track().encode(0) == b"\x00\xFF\x2F\x00"
