"""
Shared types for GMSF conversion: errors, sheet symbols, track info,
pitch lookup tables and the configuration loader.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import yaml


class GmsfError(Exception):
    """Base class for conversion errors."""


class ConfigLoadError(GmsfError):
    """Configuration is unreadable or malformed. Fatal at startup."""


class MalformedHeaderError(GmsfError):
    """GMSF header is invalid (wrong magic, unusable tempo)."""


class TruncatedInputError(GmsfError):
    """Input ended before the grid was complete."""


class SheetRangeError(GmsfError):
    """A mapped symbol sits on a row the pitch tables do not cover."""


# Row-indexed pitches, top row first: B4 A4 G4 F4 E4 D4 C4 B3 A3 G3 F3 E3 D3 C3
KEY_LOOKUP = [71, 69, 67, 65, 64, 62, 60, 59, 57, 55, 53, 52, 50, 48]

# Row-indexed GM percussion, same 7 sounds on both halves of the grid
DRUMS_LOOKUP = [
    36,  # Bass Drum 1
    39,  # Hand Clap
    59,  # Ride Cymbal 2
    38,  # Acoustic Snare
    43,  # High Floor Tom
    45,  # Low Tom
    49,  # Crash Cymbal 1
    36, 39, 59, 38, 43, 45, 49,
]

DRUM_CHANNEL = 9
LOW_NOTE_OFFSET = 24

# General MIDI instrument names, used when a track has no configured name
GM_INSTRUMENTS = [
    "Acoustic Grand Piano", "Bright Acoustic Piano", "Electric Grand Piano", "Honky-tonk Piano",
    "Electric Piano 1", "Electric Piano 2", "Harpsichord", "Clavi",
    "Celesta", "Glockenspiel", "Music Box", "Vibraphone",
    "Marimba", "Xylophone", "Tubular Bells", "Dulcimer",
    "Drawbar Organ", "Percussive Organ", "Rock Organ", "Church Organ",
    "Reed Organ", "Accordion", "Harmonica", "Tango Accordion",
    "Acoustic Guitar (nylon)", "Acoustic Guitar (steel)", "Electric Guitar (jazz)", "Electric Guitar (clean)",
    "Electric Guitar (muted)", "Overdriven Guitar", "Distortion Guitar", "Guitar harmonics",
    "Acoustic Bass", "Electric Bass (finger)", "Electric Bass (pick)", "Fretless Bass",
    "Slap Bass 1", "Slap Bass 2", "Synth Bass 1", "Synth Bass 2",
    "Violin", "Viola", "Cello", "Contrabass",
    "Tremolo Strings", "Pizzicato Strings", "Orchestral Harp", "Timpani",
    "String Ensemble 1", "String Ensemble 2", "SynthStrings 1", "SynthStrings 2",
    "Choir Aahs", "Voice Oohs", "Synth Voice", "Orchestra Hit",
    "Trumpet", "Trombone", "Tuba", "Muted Trumpet",
    "French Horn", "Brass Section", "SynthBrass 1", "SynthBrass 2",
    "Soprano Sax", "Alto Sax", "Tenor Sax", "Baritone Sax",
    "Oboe", "English Horn", "Bassoon", "Clarinet",
    "Piccolo", "Flute", "Recorder", "Pan Flute",
    "Blown Bottle", "Shakuhachi", "Whistle", "Ocarina",
    "Lead 1 (square)", "Lead 2 (sawtooth)", "Lead 3 (calliope)", "Lead 4 (chiff)",
    "Lead 5 (charang)", "Lead 6 (voice)", "Lead 7 (fifths)", "Lead 8 (bass + lead)",
    "Pad 1 (new age)", "Pad 2 (warm)", "Pad 3 (polysynth)", "Pad 4 (choir)",
    "Pad 5 (bowed)", "Pad 6 (metallic)", "Pad 7 (halo)", "Pad 8 (sweep)",
    "FX 1 (rain)", "FX 2 (soundtrack)", "FX 3 (crystal)", "FX 4 (atmosphere)",
    "FX 5 (brightness)", "FX 6 (goblins)", "FX 7 (echoes)", "FX 8 (sci-fi)",
    "Sitar", "Banjo", "Shamisen", "Koto",
    "Kalimba", "Bag pipe", "Fiddle", "Shanai",
    "Tinkle Bell", "Agogo", "Steel Drums", "Woodblock",
    "Taiko Drum", "Melodic Tom", "Synth Drum", "Reverse Cymbal",
    "Guitar Fret Noise", "Breath Noise", "Seashore", "Bird Tweet",
    "Telephone Ring", "Helicopter", "Applause", "Gunshot"
]


class Accidental(Enum):
    NATURAL = "natural"
    FLAT = "flat"
    SHARP = "sharp"

    @property
    def shift(self) -> int:
        """Semitone adjustment applied to the looked-up pitch."""
        if self == Accidental.FLAT:
            return -1
        if self == Accidental.SHARP:
            return 1
        return 0


class SheetType(Enum):
    """Kinds of grid symbol."""
    NOTE = "note"
    LOW_NOTE = "lownote"
    DRUMS = "drums"
    REPEAT_BEGIN = "repeatbegin"
    REPEAT_END = "repeatend"
    OTHER = "other"


@dataclass(frozen=True)
class SheetSymbol:
    """Meaning of a grid symbol ID.

    `channel` and `accidental` are only meaningful for NOTE and LOW_NOTE.
    """
    type: SheetType
    channel: int = 0
    accidental: Accidental = Accidental.NATURAL

    def is_pitched(self) -> bool:
        """Check if this symbol produces a note on the piano-roll."""
        return self.type in (SheetType.NOTE, SheetType.LOW_NOTE, SheetType.DRUMS)

    def channel_and_pitch(self, row: int) -> Optional[Tuple[int, int]]:
        """Resolve this symbol placed on `row` to (channel, pitch).

        Returns:
            (channel, pitch), or None for repeat markers and ignored symbols

        Raises:
            SheetRangeError: If `row` falls outside the lookup tables
        """
        if not self.is_pitched():
            return None
        if not 0 <= row < len(KEY_LOOKUP):
            raise SheetRangeError(
                f"{self.type.name} symbol on row {row}, pitch table covers rows 0-{len(KEY_LOOKUP) - 1}")

        if self.type == SheetType.DRUMS:
            return DRUM_CHANNEL, DRUMS_LOOKUP[row]

        pitch = KEY_LOOKUP[row]
        if self.type == SheetType.LOW_NOTE:
            pitch -= LOW_NOTE_OFFSET
        return self.channel, pitch + self.accidental.shift


@dataclass
class TrackInfo:
    """Output track settings for one channel."""
    patch: int  # General MIDI program number (0-127)
    name: Optional[str] = None


class TrackMapper:
    """Maps GMSF channels to output track settings."""

    def __init__(self, track_map: Optional[Dict[int, TrackInfo]] = None):
        self.track_map: Dict[int, TrackInfo] = dict(track_map or {})

    def __contains__(self, channel: int) -> bool:
        return channel in self.track_map

    def get_track_info(self, channel: int) -> Optional[TrackInfo]:
        """Get track info for a channel, or None when it has no track."""
        return self.track_map.get(channel)

    def get_track_name(self, channel: int) -> str:
        """Get the track name, falling back to the GM instrument name."""
        info = self.track_map[channel]
        if info.name is not None:
            return info.name
        if 0 <= info.patch < len(GM_INSTRUMENTS):
            return GM_INSTRUMENTS[info.patch]
        return f"Channel {channel}"


def _parse_byte_key(key: Union[int, str], table: str) -> int:
    """Accept int keys (YAML) or numeric string keys (JSON)."""
    try:
        value = int(key)
    except (TypeError, ValueError):
        raise ConfigLoadError(f"{table}: key {key!r} is not a number")
    if not 0 <= value <= 0xFF:
        raise ConfigLoadError(f"{table}: key {value} out of byte range")
    return value


def _parse_accidental(value, where: str) -> Accidental:
    try:
        return Accidental(str(value).lower())
    except ValueError:
        raise ConfigLoadError(f"{where}: unknown accidental {value!r}")


def _parse_sheet_symbol(value, where: str) -> SheetSymbol:
    """Parse one sheet map entry.

    Unit variants are plain strings ("Drums"); Note and LowNote are single-key
    mappings holding [channel, accidental], e.g. {"Note": [0, "Flat"]}.
    """
    if isinstance(value, str):
        try:
            sheet_type = SheetType(value.lower())
        except ValueError:
            raise ConfigLoadError(f"{where}: unknown symbol type {value!r}")
        if sheet_type in (SheetType.NOTE, SheetType.LOW_NOTE):
            raise ConfigLoadError(f"{where}: {value} needs [channel, accidental]")
        return SheetSymbol(sheet_type)

    if not isinstance(value, dict) or len(value) != 1:
        raise ConfigLoadError(f"{where}: expected a symbol name or a single-key mapping, got {value!r}")

    name, args = next(iter(value.items()))
    try:
        sheet_type = SheetType(str(name).lower())
    except ValueError:
        raise ConfigLoadError(f"{where}: unknown symbol type {name!r}")
    if sheet_type not in (SheetType.NOTE, SheetType.LOW_NOTE):
        # Tolerate {"Drums": null} style entries for unit variants
        if args not in (None, [], {}):
            raise ConfigLoadError(f"{where}: {name} takes no arguments")
        return SheetSymbol(sheet_type)

    if not isinstance(args, (list, tuple)) or len(args) != 2:
        raise ConfigLoadError(f"{where}: {name} needs [channel, accidental], got {args!r}")
    channel = args[0]
    if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= 0xFF:
        raise ConfigLoadError(f"{where}: channel {channel!r} is not a byte")
    return SheetSymbol(sheet_type, channel=channel, accidental=_parse_accidental(args[1], where))


def _parse_track_info(value, where: str) -> TrackInfo:
    if not isinstance(value, dict):
        raise ConfigLoadError(f"{where}: expected a mapping with patch/name, got {value!r}")
    patch = value.get('patch')
    if isinstance(patch, bool) or not isinstance(patch, int) or not 0 <= patch <= 0x7F:
        raise ConfigLoadError(f"{where}: patch {patch!r} is not a MIDI program number")
    name = value.get('name')
    if name is not None:
        if not isinstance(name, str):
            raise ConfigLoadError(f"{where}: name {name!r} is not a string")
        if len(name.encode('utf-8')) > 0xFF:
            raise ConfigLoadError(f"{where}: name longer than 255 bytes")
    return TrackInfo(patch=patch, name=name)


class SheetConfig:
    """Resolved conversion configuration: symbol map and track map."""

    def __init__(self, sheet_map: Dict[int, SheetSymbol], track_map: Dict[int, TrackInfo]):
        self.sheet_map = sheet_map
        self.track_mapper = TrackMapper(track_map)

    def get_symbol(self, symbol_id: int) -> Optional[SheetSymbol]:
        return self.sheet_map.get(symbol_id)

    @classmethod
    def from_dict(cls, data) -> 'SheetConfig':
        """Build from the parsed document (midi_track_map + gmsf_sheet_map)."""
        if not isinstance(data, dict):
            raise ConfigLoadError("Configuration must be a mapping")

        tables = {}
        for table in ('midi_track_map', 'gmsf_sheet_map'):
            if table not in data:
                raise ConfigLoadError(f"Missing table: {table}")
            entries = data[table] or {}
            if not isinstance(entries, dict):
                raise ConfigLoadError(f"{table} must be a mapping")
            tables[table] = entries

        track_map = {}
        for key, value in tables['midi_track_map'].items():
            channel = _parse_byte_key(key, 'midi_track_map')
            track_map[channel] = _parse_track_info(value, f"midi_track_map[{channel}]")

        sheet_map = {}
        for key, value in tables['gmsf_sheet_map'].items():
            symbol_id = _parse_byte_key(key, 'gmsf_sheet_map')
            sheet_map[symbol_id] = _parse_sheet_symbol(value, f"gmsf_sheet_map[{symbol_id}]")

        return cls(sheet_map, track_map)

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'SheetConfig':
        """Load a YAML (or JSON) configuration file."""
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigLoadError(f"Can't open {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Can't parse {config_path}: {e}") from e
        return cls.from_dict(data)
