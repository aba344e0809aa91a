"""Tests for per-file conversion, batch error handling and the command line."""

import os
import sys

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from convert_gmsf import main
from converter import GmsfConverter
from format_base import ConfigLoadError, MalformedHeaderError
from sheet_builders import TEST_CONFIG, make_config, build_gmsf, audiogear, NOTE, DRUMS, REPEAT_END


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(TEST_CONFIG))
    return path


def write_sheet(path, rows, **kwargs):
    path.write_bytes(build_gmsf(rows, **kwargs))
    return path


class TestConvertFile:

    def test_output_beside_input(self, tmp_path):
        sheet = write_sheet(tmp_path / "song.gmsf", [[NOTE, 0]])
        midi_path = GmsfConverter(make_config()).convert_file(sheet)
        assert midi_path == tmp_path / "song.gmsf.mid"
        assert midi_path.read_bytes()[:4] == b'MThd'

    def test_output_dir(self, tmp_path):
        sheet = write_sheet(tmp_path / "song.gmsf", [[NOTE]])
        converter = GmsfConverter(make_config(), output_dir=tmp_path / "mid")
        midi_path = converter.convert_file(sheet)
        assert midi_path == tmp_path / "mid" / "song.gmsf.mid"
        assert midi_path.exists()

    def test_idempotent(self, tmp_path):
        sheet = write_sheet(tmp_path / "song.gmsf", [[NOTE, DRUMS, 0, REPEAT_END], [0, NOTE, NOTE, REPEAT_END]])
        converter = GmsfConverter(make_config())
        first = converter.convert_file(sheet).read_bytes()
        second = converter.convert_file(sheet).read_bytes()
        assert first == second

    def test_dump_written(self, tmp_path):
        sheet = write_sheet(tmp_path / "song.gmsf", [[NOTE]])
        GmsfConverter(make_config(), dump_text=True).convert_file(sheet)
        text = (tmp_path / "song.gmsf.txt").read_text()
        assert "Tempo:      120 BPM" in text

    def test_bad_magic_writes_nothing(self, tmp_path):
        sheet = write_sheet(tmp_path / "bad.gmsf", [[NOTE]], magic=b'XXXX')
        with pytest.raises(MalformedHeaderError):
            GmsfConverter(make_config()).convert_file(sheet)
        assert not (tmp_path / "bad.gmsf.mid").exists()

    def test_from_config_file(self, config_file):
        converter = GmsfConverter.from_config_file(config_file)
        assert converter.config.get_symbol(NOTE) is not None

    def test_from_missing_config_file(self, tmp_path):
        with pytest.raises(ConfigLoadError):
            GmsfConverter.from_config_file(tmp_path / "missing.yaml")


class TestConvertAll:

    def test_continues_after_failures(self, tmp_path, capsys):
        bad = write_sheet(tmp_path / "bad.gmsf", [[NOTE]], magic=b'XXXX')
        truncated = tmp_path / "short.gmsf"
        truncated.write_bytes(build_gmsf([[NOTE, NOTE, NOTE]])[:-1])
        missing = tmp_path / "missing.gmsf"
        good = write_sheet(tmp_path / "good.gmsf", [[NOTE]])

        converted = GmsfConverter(make_config()).convert_all([bad, truncated, missing, good])

        assert converted == 1
        assert (tmp_path / "good.gmsf.mid").exists()
        assert not (tmp_path / "bad.gmsf.mid").exists()
        assert not (tmp_path / "short.gmsf.mid").exists()
        out = capsys.readouterr().out
        assert f"ERROR: {bad}" in out
        assert f"ERROR: {truncated}" in out
        assert f"ERROR: {missing}" in out
        assert "OK: Generated good.gmsf.mid" in out

    def test_continues_after_out_of_range_audiogear_row(self, tmp_path, capsys):
        wide = write_sheet(tmp_path / "wide.gmsf", [[NOTE, audiogear([(NOTE, 20)])]])
        good = write_sheet(tmp_path / "good.gmsf", [[NOTE]])

        converted = GmsfConverter(make_config()).convert_all([wide, good])

        assert converted == 1
        assert not (tmp_path / "wide.gmsf.mid").exists()
        assert (tmp_path / "good.gmsf.mid").exists()
        out = capsys.readouterr().out
        assert f"ERROR: {wide}" in out
        assert "OK: Generated good.gmsf.mid" in out


class TestMain:

    def test_converts_files(self, tmp_path, config_file):
        sheet = write_sheet(tmp_path / "a.gmsf", [[NOTE]])
        assert main(['--config', str(config_file), str(sheet)]) == 0
        assert (tmp_path / "a.gmsf.mid").exists()

    def test_exit_zero_with_per_file_failures(self, tmp_path, config_file):
        bad = write_sheet(tmp_path / "bad.gmsf", [[NOTE]], magic=b'XXXX')
        good = write_sheet(tmp_path / "good.gmsf", [[NOTE]])
        assert main(['--config', str(config_file), str(bad), str(good)]) == 0
        assert (tmp_path / "good.gmsf.mid").exists()

    def test_output_dir_and_dump(self, tmp_path, config_file):
        sheet = write_sheet(tmp_path / "a.gmsf", [[NOTE]])
        out_dir = tmp_path / "out"
        assert main(['--config', str(config_file), '--output-dir', str(out_dir), '--dump', str(sheet)]) == 0
        assert (out_dir / "a.gmsf.mid").exists()
        assert (out_dir / "a.gmsf.txt").exists()

    def test_bad_config_is_fatal(self, tmp_path, capsys):
        config = tmp_path / "config.yaml"
        config.write_text("midi_track_map: {}\n")
        sheet = write_sheet(tmp_path / "a.gmsf", [[NOTE]])
        assert main(['--config', str(config), str(sheet)]) == 1
        assert not (tmp_path / "a.gmsf.mid").exists()
        assert "Missing table: gmsf_sheet_map" in capsys.readouterr().out

    def test_no_files(self, capsys):
        assert main([]) == 1
        assert "Usage:" in capsys.readouterr().out
