"""Tests for RunnerConfig and load_config."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from ec2runner.config import RunnerConfig, load_config
from ec2runner.errors import ConfigError
from ec2runner.models import BootVariant, ExecutionMode, Tag

ACTION_ENV = {
    "GITHUB_REPOSITORY": "octo/widgets",
    "INPUT_MODE": "start",
    "INPUT_GITHUB-TOKEN": "ghp_env",
    "INPUT_GITHUB-RUNNER-GROUP": "gpu",
    "INPUT_EC2-IMAGE-ID": "ami-env",
    "INPUT_EC2-INSTANCE-TYPE": "g5.xlarge",
    "INPUT_SUBNET-ID": "subnet-env",
    "INPUT_SECURITY-GROUP-ID": "sg-env",
    "INPUT_IAM-ROLE-NAME": "",
    "INPUT_REUSE": "true",
    "INPUT_AWS-RESOURCE-TAGS": '[{"Key": "team", "Value": "ml"}]',
}


class TestLoadFromEnvironment:
    """Action inputs arrive as INPUT_<NAME> variables."""

    def test_reads_action_inputs(self):
        config = load_config(environ=ACTION_ENV)
        assert config.mode == ExecutionMode.START
        assert config.runner_group == "gpu"
        assert config.ec2_instance_type == "g5.xlarge"
        assert config.reuse is True
        assert config.extra_tags == (Tag(key="team", value="ml"),)

    def test_empty_inputs_fall_back_to_defaults(self):
        config = load_config(environ=ACTION_ENV)
        assert config.iam_role_name is None
        assert config.auto_termination is False

    def test_region_from_aws_env(self):
        env = {**ACTION_ENV, "AWS_REGION": "ap-south-1"}
        assert load_config(environ=env).ec2_region == "ap-south-1"

    def test_region_input_beats_aws_env(self):
        env = {**ACTION_ENV, "AWS_REGION": "ap-south-1", "INPUT_EC2-REGION": "eu-north-1"}
        assert load_config(environ=env).ec2_region == "eu-north-1"

    def test_overrides_win(self):
        config = load_config(environ=ACTION_ENV, runner_group="cpu", reuse=False)
        assert config.runner_group == "cpu"
        assert config.reuse is False

    def test_none_overrides_ignored(self):
        config = load_config(environ=ACTION_ENV, runner_group=None)
        assert config.runner_group == "gpu"


class TestLoadFromFile:

    def test_yaml_uses_input_names(self, tmp_path: Path):
        path = tmp_path / "runner.yaml"
        path.write_text(yaml.dump({
            "ec2-instance-type": "t3.large",
            "auto-termination": True,
            "termination-delay": 15,
        }))
        env = {k: v for k, v in ACTION_ENV.items() if k != "INPUT_EC2-INSTANCE-TYPE"}
        config = load_config(environ=env, config_file=path)
        assert config.ec2_instance_type == "t3.large"
        assert config.auto_termination is True
        assert config.termination_delay == 15

    def test_environment_beats_file(self, tmp_path: Path):
        path = tmp_path / "runner.yaml"
        path.write_text(yaml.dump({"ec2-instance-type": "t3.large"}))
        config = load_config(environ=ACTION_ENV, config_file=path)
        assert config.ec2_instance_type == "g5.xlarge"

    def test_unknown_key_rejected(self, tmp_path: Path):
        path = tmp_path / "runner.yaml"
        path.write_text(yaml.dump({"ec2-flavor": "big"}))
        with pytest.raises(ConfigError, match="ec2-flavor"):
            load_config(environ=ACTION_ENV, config_file=path)

    def test_non_mapping_rejected(self, tmp_path: Path):
        path = tmp_path / "runner.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(environ=ACTION_ENV, config_file=path)

    def test_missing_file_rejected(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(environ=ACTION_ENV, config_file=tmp_path / "nope.yaml")


class TestValidation:

    def test_start_requires_image(self):
        env = {k: v for k, v in ACTION_ENV.items() if k != "INPUT_EC2-IMAGE-ID"}
        with pytest.raises(ConfigError, match="ec2-image-id"):
            load_config(environ=env)

    def test_stop_requires_instance_id(self):
        env = {**ACTION_ENV, "INPUT_MODE": "stop"}
        with pytest.raises(ConfigError, match="ec2-instance-id"):
            load_config(environ=env)

    def test_stop_does_not_require_ec2_launch_inputs(self):
        env = {
            "GITHUB_REPOSITORY": "octo/widgets",
            "INPUT_MODE": "stop",
            "INPUT_GITHUB-TOKEN": "ghp_env",
            "INPUT_GITHUB-RUNNER-GROUP": "gpu",
            "INPUT_EC2-INSTANCE-ID": "i-123",
        }
        config = load_config(environ=env)
        assert config.mode == ExecutionMode.STOP
        assert config.ec2_instance_id == "i-123"

    def test_bad_tags_json(self):
        env = {**ACTION_ENV, "INPUT_AWS-RESOURCE-TAGS": "[not json"}
        with pytest.raises(ConfigError, match="aws-resource-tags"):
            load_config(environ=env)

    def test_bad_mode(self):
        env = {**ACTION_ENV, "INPUT_MODE": "restart"}
        with pytest.raises(ConfigError):
            load_config(environ=env)

    def test_bad_repository(self, make_config):
        with pytest.raises(ValidationError):
            make_config(github_repository="widgets")

    def test_config_is_frozen(self, config: RunnerConfig):
        with pytest.raises(ValidationError):
            config.reuse = True


class TestDerivedValues:

    def test_github_url(self, config: RunnerConfig):
        assert config.github_url == "https://github.com/octo/widgets"
        assert config.owner == "octo"
        assert config.repo == "widgets"

    def test_boot_variant_follows_home_dir(self, make_config):
        assert make_config().boot_variant == BootVariant.FRESH_INSTALL
        assert make_config(runner_home_dir="/opt/runner").boot_variant == BootVariant.PREBAKED

    def test_tag_set_starts_with_group(self, make_config):
        config = make_config(extra_tags=[{"Key": "team", "Value": "ml"}])
        assert [(t.key, t.value) for t in config.tag_set] == [
            ("runnergroup", "g1"),
            ("team", "ml"),
        ]
