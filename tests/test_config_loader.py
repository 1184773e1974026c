"""Tests for ConfigLoader module."""
import pytest
from pathlib import Path

from piano_synth.config_loader import ConfigLoader, SynthConfig
from piano_synth.errors import ConfigLoadError


class TestSynthConfig:
    """Test suite for SynthConfig dataclass."""

    def test_defaults(self):
        config = SynthConfig()

        assert config.sample_rate == 48000
        assert config.harmonic_count == 8
        assert config.global_scale == 0.15
        assert config.note_duration == 7.0
        assert config.sink == "null"

    def test_invalid_sink(self):
        with pytest.raises(ConfigLoadError):
            SynthConfig(sink="speaker")

    def test_invalid_values(self):
        with pytest.raises(ConfigLoadError):
            SynthConfig(harmonic_count=0)
        with pytest.raises(ConfigLoadError):
            SynthConfig(note_duration=-1.0)

    def test_from_dict_ignores_unknown_keys(self):
        config = SynthConfig.from_dict({"harmonic_count": 6, "reverb": 0.3})
        assert config.harmonic_count == 6

    def test_session_kwargs(self):
        kwargs = SynthConfig(note_duration=2.0, sink="wav", output_dir="out").session_kwargs()

        assert kwargs["total_duration"] == 2.0
        assert kwargs["sink_kind"] == "wav"
        assert kwargs["output_dir"] == "out"
        assert "device" in kwargs


class TestConfigLoader:
    """Test suite for ConfigLoader class."""

    def test_loader_initialization(self, temp_dir):
        loader = ConfigLoader(temp_dir)
        assert loader.config_dir == Path(temp_dir)

    def test_default_loader_uses_repo_configs(self, project_config_dir):
        loader = ConfigLoader()
        assert loader.config_dir.resolve() == project_config_dir.resolve()

    def test_default_preset_inside_package(self):
        import piano_synth

        loader = ConfigLoader()
        package_dir = Path(piano_synth.__file__).resolve().parent

        assert loader.config_dir.resolve().parent == package_dir
        assert loader.has_preset("piano")
        assert loader.load_or_default("piano").output_dir == "output"

    def test_repo_preset_matches_defaults(self, project_config_dir):
        config = ConfigLoader(project_config_dir).load("piano")
        assert config == SynthConfig(output_dir="output")

    def test_load_synth_section(self, temp_yaml_file):
        temp_yaml_file.write_text(
            "synth:\n"
            "  sample_rate: 22050\n"
            "  harmonic_count: 6\n"
            "  sink: wav\n"
            "  output_dir: renders\n",
            encoding="utf-8",
        )
        config = ConfigLoader(temp_yaml_file.parent).load(temp_yaml_file.stem)

        assert config.sample_rate == 22050
        assert config.harmonic_count == 6
        assert config.sink == "wav"
        assert config.output_dir == "renders"
        assert config.global_scale == 0.15

    def test_load_top_level(self, temp_yaml_file):
        temp_yaml_file.write_text("note_duration: 3.5\n", encoding="utf-8")
        config = ConfigLoader(temp_yaml_file.parent).load(temp_yaml_file.stem)

        assert config.note_duration == 3.5

    def test_caching(self, temp_yaml_file):
        temp_yaml_file.write_text("harmonic_count: 4\n", encoding="utf-8")
        loader = ConfigLoader(temp_yaml_file.parent)

        first = loader.load(temp_yaml_file.stem)
        temp_yaml_file.write_text("harmonic_count: 5\n", encoding="utf-8")
        assert loader.load(temp_yaml_file.stem) is first

        loader.clear_cache()
        assert loader.load(temp_yaml_file.stem).harmonic_count == 5

    def test_missing_file(self, temp_dir):
        with pytest.raises(ConfigLoadError):
            ConfigLoader(temp_dir).load("absent")

    def test_load_or_default(self, temp_dir):
        loader = ConfigLoader(temp_dir)

        assert not loader.has_preset("absent")
        assert loader.load_or_default("absent") == SynthConfig()

    def test_malformed_yaml(self, temp_yaml_file):
        temp_yaml_file.write_text("synth: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(temp_yaml_file.parent).load(temp_yaml_file.stem)

    def test_invalid_values_wrapped(self, temp_yaml_file):
        temp_yaml_file.write_text("synth:\n  harmonic_count: lots\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(temp_yaml_file.parent).load(temp_yaml_file.stem)

    def test_non_mapping_section(self, temp_yaml_file):
        temp_yaml_file.write_text("synth: 42\n", encoding="utf-8")

        with pytest.raises(ConfigLoadError):
            ConfigLoader(temp_yaml_file.parent).load(temp_yaml_file.stem)
