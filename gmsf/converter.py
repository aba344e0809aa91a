"""
GMSF conversion orchestrator.
Handles config loading, per-file conversion and batch processing.
"""

from pathlib import Path
from typing import List, Optional, Union

from format_base import GmsfError, SheetConfig
from format_gmsf import GmsfDocument, GmsfReader
from output_generators import MidiGenerator, dump_grid_to_text


MIDI_SUFFIX = '.mid'
DUMP_SUFFIX = '.txt'


class GmsfConverter:
    """Main converter class."""

    def __init__(self, config: SheetConfig, output_dir: Optional[Union[str, Path]] = None,
                 dump_text: bool = False):
        """
        Args:
            config: Loaded sheet configuration
            output_dir: Directory for outputs; defaults to beside each input
            dump_text: Also write a text dump of each decoded grid
        """
        self.config = config
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.dump_text = dump_text

        self.reader = GmsfReader(config)
        self.midi_generator = MidiGenerator(config.track_mapper)

    @classmethod
    def from_config_file(cls, config_path: Union[str, Path], **kwargs) -> 'GmsfConverter':
        """Load the configuration file and build a converter. Raises ConfigLoadError."""
        return cls(SheetConfig.from_file(config_path), **kwargs)

    def output_path_for(self, input_path: Path, suffix: str = MIDI_SUFFIX) -> Path:
        """Input path with `suffix` appended (`song.gmsf` -> `song.gmsf.mid`)."""
        filename = input_path.name + suffix
        if self.output_dir is not None:
            return self.output_dir / filename
        return input_path.with_name(filename)

    def decode(self, input_path: Union[str, Path]) -> GmsfDocument:
        return self.reader.read_file(input_path)

    def convert_file(self, input_path: Union[str, Path]) -> Path:
        """Convert one GMSF file to MIDI.

        Returns:
            Path of the written MIDI file

        Raises:
            GmsfError: Malformed or truncated input
            OSError: Input unreadable or output unwritable
        """
        input_path = Path(input_path)
        doc = self.decode(input_path)

        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)

        midi_path = self.output_path_for(input_path)
        self.midi_generator.generate(doc, midi_path)

        if self.dump_text:
            text_path = self.output_path_for(input_path, DUMP_SUFFIX)
            text_path.write_text(dump_grid_to_text(doc, self.config) + '\n')

        return midi_path

    def convert_all(self, input_paths: List[Union[str, Path]]) -> int:
        """Convert every file, reporting failures and moving on.

        Returns:
            Number of files that converted successfully
        """
        converted = 0
        for input_path in input_paths:
            print(f"Processing: {input_path}")
            try:
                midi_path = self.convert_file(input_path)
            except (GmsfError, OSError) as e:
                print(f"  ERROR: {input_path}: {e}, skipping")
                continue
            converted += 1
            print(f"  OK: Generated {midi_path.name}")
        return converted
