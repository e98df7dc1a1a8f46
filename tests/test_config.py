"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from rnaseq_workshop.config import CONFIG_TEMPLATE, Config, PathConfig, get_config, set_config


@pytest.fixture(autouse=True)
def reset_global_config():
    set_config(None)
    yield
    set_config(None)


class TestPathConfig:

    def test_derived_paths(self, tmp_path):
        paths = PathConfig(workdir=tmp_path)

        assert paths.data_dir == tmp_path / "data"
        assert paths.counts_path == tmp_path / "data" / "GSE60450_LactationGenewiseCounts.txt"
        assert paths.figures_dir == tmp_path / "output" / "figures"
        assert paths.sessions_dir == tmp_path / "sessions"

    def test_explicit_data_dir(self, tmp_path):
        paths = PathConfig(workdir=tmp_path, data_dir=tmp_path / "inputs")

        assert paths.sample_info_path == tmp_path / "inputs" / "SampleInfo_Corrected.txt"
        assert paths.output_dir == tmp_path / "output"

    def test_no_annotation_file(self, tmp_path):
        assert PathConfig(workdir=tmp_path, annotation_file=None).annotation_path is None

    def test_create_directories(self, tmp_path):
        config = Config(paths=PathConfig(workdir=tmp_path))
        config.initialize()

        assert (tmp_path / "output" / "html").is_dir()
        assert (tmp_path / "sessions").is_dir()


class TestConfig:

    def test_defaults(self):
        config = Config()

        assert config.defaults.cpm_threshold == 0.5
        assert config.defaults.min_samples == 2
        assert config.defaults.contrasts['B.PregVsLac'] == 'basal.pregnant - basal.lactate'

    def test_yaml_round_trip(self, tmp_path):
        config = Config(paths=PathConfig(workdir=tmp_path))
        config.defaults.fdr_threshold = 0.01
        path = tmp_path / "workshop.yaml"

        config.to_yaml(path)
        loaded = Config.from_yaml(path)

        assert loaded.defaults.fdr_threshold == 0.01
        assert loaded.paths.data_dir == tmp_path / "data"

    def test_template_is_valid(self):
        config = Config(**yaml.safe_load(CONFIG_TEMPLATE))

        assert config.paths.workdir == Path(".")
        assert config.defaults.treat_lfc == 1.0
        assert config.defaults.use_mygene is False
        assert config.defaults.annotation_species == "mouse"
        assert set(config.plots.model_dump()) == {"dpi", "static_format", "width", "height"}

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RNASEQ_WS_DEFAULTS__CPM_THRESHOLD", "1.0")
        monkeypatch.setenv("RNASEQ_WS_TITLE", "Mammary gland")

        config = Config()

        assert config.defaults.cpm_threshold == 1.0
        assert config.defaults.min_samples == 2
        assert config.title == "Mammary gland"

    def test_annotation_source_override(self, monkeypatch):
        monkeypatch.setenv("RNASEQ_WS_DEFAULTS__USE_MYGENE", "true")

        assert Config().defaults.use_mygene is True

    def test_invalid_value(self):
        with pytest.raises(PydanticValidationError):
            Config(defaults={'fdr_threshold': 2.0})

    def test_get_config_reads_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "workshop.yaml").write_text("defaults:\n  min_samples: 3\n")
        monkeypatch.chdir(tmp_path)

        assert get_config().defaults.min_samples == 3
        assert get_config() is get_config()
