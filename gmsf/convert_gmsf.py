#!/usr/bin/env python3
"""
GMSF to MIDI converter.
Converts grid-based GMSF music sheets into Standard MIDI Files.
"""

import sys

from converter import GmsfConverter
from format_base import ConfigLoadError


DEFAULT_CONFIG = 'config.yaml'


def print_usage():
    print("Usage: python convert_gmsf.py [options] <file.gmsf> [more files...]")
    print()
    print("Arguments:")
    print("  file.gmsf               - GMSF sheet(s) to convert, each written as <file>.mid")
    print()
    print("Options:")
    print(f"  --config <path>         - Symbol/track mapping (YAML or JSON, default {DEFAULT_CONFIG})")
    print("  --output-dir <dir>      - Write outputs to <dir> instead of beside each input")
    print("  --dump                  - Also write a text dump of each grid (<file>.txt)")
    print()
    print("Examples:")
    print("  python convert_gmsf.py song1.gmsf song2.gmsf")
    print("  python convert_gmsf.py --config config.json --output-dir mid *.gmsf")


def main(argv=None):
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv

    config_path = DEFAULT_CONFIG
    output_dir = None
    dump_text = False
    files = []

    i = 0
    while i < len(argv):
        arg = argv[i]
        if arg == '--config' and i + 1 < len(argv):
            config_path = argv[i + 1]
            i += 1
        elif arg == '--output-dir' and i + 1 < len(argv):
            output_dir = argv[i + 1]
            i += 1
        elif arg == '--dump':
            dump_text = True
        elif arg in ('-h', '--help'):
            print_usage()
            return 0
        else:
            files.append(arg)
        i += 1

    if not files:
        print_usage()
        return 1

    try:
        converter = GmsfConverter.from_config_file(config_path, output_dir=output_dir, dump_text=dump_text)
    except ConfigLoadError as e:
        print(f"Error: {e}")
        return 1

    converted = converter.convert_all(files)
    print(f"Converted {converted} of {len(files)} file(s)")
    # Per-file failures are reported above and don't change the exit status
    return 0


if __name__ == '__main__':
    sys.exit(main())
