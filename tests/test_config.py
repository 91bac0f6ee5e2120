"""Tests for RunConfig validation and profiles."""

import dataclasses
import os
from pathlib import Path

import pytest

from longreadqc.config import PROFILES, RunConfig, format_profiles, profile_defaults
from longreadqc.exceptions import ConfigurationError


class TestValidate:

    def test_defaults_are_valid(self, make_config):
        config = make_config().validate()
        assert config.threads == 4
        assert config.min_length == 1000
        assert config.quality_threshold == 7
        assert config.complexity_threshold == 30
        assert config.trim_poly_g and config.trim_poly_x and config.generate_report

    def test_immutable(self, make_config):
        config = make_config()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.threads = 8

    @pytest.mark.parametrize("overrides,message", [
        ({"threads": 0}, "Thread count"),
        ({"min_length": 0}, "Minimum length"),
        ({"quality_threshold": -1}, "Quality threshold"),
        ({"complexity_threshold": 101}, "Complexity threshold"),
        ({"complexity_threshold": -5}, "Complexity threshold"),
        ({"jobs": 0}, "job count"),
        ({"threads": 2, "jobs": 3}, "cannot exceed"),
    ])
    def test_range_checks(self, make_config, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            make_config(**overrides).validate()

    def test_missing_input_dir(self, make_config, tmp_path):
        with pytest.raises(ConfigurationError, match="Input directory does not exist"):
            make_config(input_dir=tmp_path / "nope").validate()

    def test_output_parent_must_exist(self, make_config, tmp_path):
        with pytest.raises(ConfigurationError, match="output directory parent"):
            make_config(output_dir=tmp_path / "missing" / "out").validate()

    def test_output_path_is_a_file(self, make_config, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(ConfigurationError, match="not a directory"):
            make_config(output_dir=target).validate()

    @pytest.mark.skipif(os.geteuid() == 0, reason="root can write anywhere")
    def test_output_parent_not_writable(self, make_config, tmp_path):
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0o555)
        try:
            with pytest.raises(ConfigurationError, match="Cannot write"):
                make_config(output_dir=locked / "out").validate()
        finally:
            locked.chmod(0o755)

    def test_adapter_fasta_missing(self, make_config, tmp_path):
        with pytest.raises(ConfigurationError, match="Adapter FASTA file not found"):
            make_config(adapter_fasta=tmp_path / "adapters.fasta").validate()

    def test_adapter_fasta_empty(self, make_config, tmp_path):
        adapters = tmp_path / "adapters.fasta"
        adapters.write_text("")
        with pytest.raises(ConfigurationError, match="no sequences"):
            make_config(adapter_fasta=adapters).validate()

    def test_adapter_fasta_valid(self, make_config, tmp_path):
        adapters = tmp_path / "adapters.fasta"
        adapters.write_text(">ONT_adapter1\nAATGTACTTCGTTCAGTTACGTATTGCT\n"
                            ">ONT_adapter2\nGCAATACGTAACTGAACGAAGT\n")
        assert make_config(adapter_fasta=adapters).validate().adapter_fasta == adapters


class TestDerived:

    def test_threads_per_sample(self, make_config):
        assert make_config(threads=4).threads_per_sample == 4
        assert make_config(threads=16, jobs=4).threads_per_sample == 4
        assert make_config(threads=5, jobs=2).threads_per_sample == 2

    def test_output_layout(self, make_config, output_dir):
        config = make_config()
        assert config.trimmed_dir == output_dir / "trimmed"
        assert config.reports_dir == output_dir / "reports"
        assert config.logs_dir == output_dir / "logs"
        assert config.summary_path == output_dir / "processing_summary.txt"

    def test_as_dict_is_serializable(self, make_config, tmp_path):
        params = make_config(adapter_fasta=tmp_path / "a.fasta").as_dict()
        assert params["adapter_fasta"] == str(tmp_path / "a.fasta")
        assert params["threads_per_sample"] == 4
        assert isinstance(params["input_dir"], str)


class TestProfiles:

    def test_profile_keys_are_cli_destinations(self):
        allowed = {"description", "threads", "min_length", "quality_threshold", "complexity",
                   "no_trim_poly_g", "no_trim_poly_x", "no_report"}
        for name, profile in PROFILES.items():
            assert set(profile) <= allowed, name

    def test_profile_defaults_drop_description(self):
        defaults = profile_defaults("pacbio")
        assert "description" not in defaults
        assert defaults["quality_threshold"] == 12
        assert defaults["no_trim_poly_g"] is True

    def test_unknown_profile(self):
        with pytest.raises(ConfigurationError, match="Unknown profile"):
            profile_defaults("illumina")

    def test_format_profiles_lists_all(self):
        table = format_profiles()
        for name in PROFILES:
            assert name in table


class TestFromArgs:

    def test_maps_negative_flags(self, input_dir, output_dir):
        class Args:
            pass
        args = Args()
        args.input_dir, args.output_dir = str(input_dir), str(output_dir)
        args.threads, args.min_length, args.quality_threshold, args.complexity = 8, 500, 10, 35
        args.adapter_fasta = None
        args.no_trim_poly_g, args.no_trim_poly_x, args.no_report = True, False, True
        args.jobs, args.no_recursive, args.fastp = 2, True, None

        config = RunConfig.from_args(args)

        assert config.input_dir == Path(input_dir)
        assert config.complexity_threshold == 35
        assert config.trim_poly_g is False
        assert config.trim_poly_x is True
        assert config.generate_report is False
        assert config.recursive is False
        assert config.fastp_path == "fastp"
        assert config.adapter_fasta is None
