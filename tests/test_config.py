"""Tests for PipelineConfig loading and validation."""

from dataclasses import replace
from pathlib import Path

import pytest

from threestep.config import PipelineConfig, config_from_dict, config_to_dict, load_config
from threestep.errors import ConfigError, ConfigurationMismatch


CONFIG_YAML = """\
output_dir: runs/lca3
class_count: 3
indicators: [u1, u2, u3]
covariates: [x1]
distal_outcomes: [d1]
starts: [200, 50]
"""


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = load_config(path)
        assert config.indicators == ("u1", "u2", "u3")
        assert config.starts == (200, 50)
        assert config.reference == 3
        assert config.engine_class_column == "C"

    def test_relative_output_dir_resolved_against_file(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(CONFIG_YAML, encoding="utf-8")

        config = load_config(path)
        assert config.output_dir == (tmp_path / "runs" / "lca3").resolve()
        assert config.output_dir.is_absolute()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("indicators: [u1, u2\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestConfigFromDict:

    def test_unknown_key(self, tmp_path):
        with pytest.raises(ConfigError, match="classes"):
            config_from_dict({"output_dir": str(tmp_path), "indicators": ["u1"], "classes": 3})

    def test_missing_indicators(self, tmp_path):
        with pytest.raises(ConfigError):
            config_from_dict({"output_dir": str(tmp_path)})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict(["u1", "u2"])

    def test_single_string_is_one_item(self, tmp_path):
        config = config_from_dict({
            "output_dir": str(tmp_path),
            "indicators": ["u1", "u2"],
            "covariates": "x1",
            "output_options": "TECH11",
        })
        assert config.covariates == ("x1",)
        assert config.output_options == ("TECH11",)

    def test_mapping_for_list_field(self, tmp_path):
        with pytest.raises(ConfigError, match="covariates"):
            config_from_dict({
                "output_dir": str(tmp_path),
                "indicators": ["u1", "u2"],
                "covariates": {"x1": 1},
            })

    def test_round_trip(self, sample_config):
        restored = config_from_dict(config_to_dict(replace(sample_config, output_dir=sample_config.output_dir.resolve())))
        assert restored == replace(sample_config, output_dir=sample_config.output_dir.resolve())


class TestValidate:

    def test_single_class_rejected(self, tmp_path):
        with pytest.raises(ConfigurationMismatch):
            PipelineConfig(output_dir=tmp_path, indicators=("u1",), class_count=1).validate()

    def test_reference_out_of_range(self, tmp_path):
        with pytest.raises(ConfigurationMismatch):
            PipelineConfig(output_dir=tmp_path, indicators=("u1",), reference_class=4).validate()

    def test_indicator_used_as_auxiliary(self, tmp_path):
        with pytest.raises(ConfigurationMismatch):
            PipelineConfig(output_dir=tmp_path, indicators=("u1", "x1"), covariates=("x1",)).validate()

    def test_test_outcome_must_be_distal(self, tmp_path):
        with pytest.raises(ConfigurationMismatch):
            PipelineConfig(
                output_dir=tmp_path, indicators=("u1",), distal_outcomes=("d1",), test_outcome="d2"
            ).validate()

    def test_auxiliaries_deduplicated_in_order(self, tmp_path):
        config = PipelineConfig(
            output_dir=Path(tmp_path),
            indicators=("u1",),
            covariates=("x1", "x2"),
            distal_outcomes=("d1",),
            distal_predictors=("x2",),
        )
        assert config.auxiliaries == ("x1", "x2", "d1")

    def test_custom_class_column(self, tmp_path):
        config = PipelineConfig(output_dir=tmp_path, indicators=("u1",), latent_name="cl", class_column="MLC")
        assert config.engine_class_column == "MLC"
        assert replace(config, class_column=None).engine_class_column == "CL"
