"""
Tests for configuration providers.

Tests FileConfigProvider (YAML/TOML) and EnvironmentConfigProvider.
"""

from textwrap import dedent

import pytest

from issuebridge.adapters.config.env_provider import ENV_KEYS, EnvironmentConfigProvider
from issuebridge.adapters.config.file_provider import (
    FileConfigProvider,
    as_bool,
    config_from_dict,
    find_config_file,
    get_path,
    read_config_file,
    set_path,
)
from issuebridge.core.exceptions import ConfigFileError
from issuebridge.core.ports.config_provider import AppConfig, GitLabConfig, TrackerType


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run every test in an empty directory with no tracker variables set."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path


YAML_CONFIG = dedent(
    """\
    tracker: azure_devops
    azure_devops:
      organization: contoso
      pat: secret
      project: Fabrikam
    issues:
      mapping_expression: "Fabrikam\\\\Release $ReleaseNumber"
      closed_states: Fixed,Done
      variables:
        ReleaseNumber: 1.4
    execute: false
    timeout: 10
    """
)


class TestHelpers:
    def test_as_bool(self):
        assert as_bool(True)
        assert as_bool("Yes")
        assert as_bool("1")
        assert not as_bool("false")
        assert not as_bool(0)

    def test_get_and_set_path(self):
        data = {}
        set_path(data, "a.b.c", 1)

        assert data == {"a": {"b": {"c": 1}}}
        assert get_path(data, "a.b.c") == 1
        assert get_path(data, "a.x", "d") == "d"

    def test_set_path_replaces_scalar(self):
        data = {"a": "scalar"}
        set_path(data, "a.b", 1)

        assert data == {"a": {"b": 1}}


class TestConfigFromDict:
    """Tests for config_from_dict."""

    def test_defaults(self):
        config = config_from_dict({})

        assert config.tracker == TrackerType.AZURE_DEVOPS
        assert config.dry_run is True
        assert config.issues.closed_states == "Resolved,Closed,Done"

    def test_gitlab(self):
        config = config_from_dict({"tracker": "gitlab", "gitlab": {"token": "t", "project": 123}})

        assert config.tracker == TrackerType.GITLAB
        assert config.gitlab == GitLabConfig(token="t", project="123")
        assert config.project == "123"

    def test_execute(self):
        assert config_from_dict({"execute": "true"}).dry_run is False

    def test_unknown_tracker(self):
        with pytest.raises(ValueError, match="Unknown tracker type"):
            config_from_dict({"tracker": "jira"})

    def test_tracker_alias(self):
        assert TrackerType.from_string("Azure-DevOps") == TrackerType.AZURE_DEVOPS


class TestAppConfigValidate:
    def test_missing_azure_devops(self):
        assert AppConfig().validate() == ["Missing Azure DevOps configuration"]

    def test_missing_gitlab_token(self):
        errors = AppConfig(tracker=TrackerType.GITLAB).validate()

        assert errors == ["Missing GitLab token (GITLAB_TOKEN)"]

    def test_numbers(self):
        config = config_from_dict({"azure_devops": {"organization": "o", "pat": "p"}})
        config.timeout = 0
        config.max_retries = -1

        assert config.validate() == ["Timeout must be positive", "max_retries cannot be negative"]


class TestReadConfigFile:
    """Tests for reading YAML and TOML files."""

    def test_yaml(self, isolated_env):
        path = isolated_env / ".issuebridge.yaml"
        path.write_text(YAML_CONFIG)

        data = read_config_file(path)

        assert data["azure_devops"]["organization"] == "contoso"
        assert data["issues"]["mapping_expression"] == "Fabrikam\\Release $ReleaseNumber"

    def test_toml(self, isolated_env):
        path = isolated_env / ".issuebridge.toml"
        path.write_text('tracker = "gitlab"\n[gitlab]\ntoken = "t"\n')

        assert read_config_file(path) == {"tracker": "gitlab", "gitlab": {"token": "t"}}

    def test_pyproject_section(self, isolated_env):
        path = isolated_env / "pyproject.toml"
        path.write_text('[project]\nname = "x"\n[tool.issuebridge]\ntimeout = 5\n')

        assert read_config_file(path) == {"timeout": 5}

    def test_missing_file(self, isolated_env):
        with pytest.raises(ConfigFileError, match="Config file not found"):
            read_config_file(isolated_env / "nope.yaml")

    def test_invalid_yaml(self, isolated_env):
        path = isolated_env / ".issuebridge.yaml"
        path.write_text("tracker: [unclosed\n")

        with pytest.raises(ConfigFileError, match="Invalid YAML syntax"):
            read_config_file(path)

    def test_invalid_toml(self, isolated_env):
        path = isolated_env / ".issuebridge.toml"
        path.write_text("tracker = \n")

        with pytest.raises(ConfigFileError, match="Invalid TOML syntax"):
            read_config_file(path)

    def test_not_a_mapping(self, isolated_env):
        path = isolated_env / ".issuebridge.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigFileError, match="must contain a mapping"):
            read_config_file(path)


class TestFindConfigFile:
    def test_none(self, isolated_env):
        assert find_config_file() is None

    def test_prefers_yaml(self, isolated_env):
        (isolated_env / ".issuebridge.toml").write_text("timeout = 5\n")
        (isolated_env / ".issuebridge.yaml").write_text("timeout: 5\n")

        assert find_config_file() == isolated_env / ".issuebridge.yaml"

    def test_skips_pyproject_without_section(self, isolated_env):
        (isolated_env / "pyproject.toml").write_text('[project]\nname = "x"\n')

        assert find_config_file() is None

    def test_search_dirs(self, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        (other / ".issuebridge.yml").write_text("timeout: 5\n")

        assert find_config_file([other]) == other / ".issuebridge.yml"


class TestFileConfigProvider:
    """Tests for FileConfigProvider."""

    def test_load(self, isolated_env):
        (isolated_env / ".issuebridge.yaml").write_text(YAML_CONFIG)
        provider = FileConfigProvider()

        config = provider.load()

        assert provider.name.startswith("file:")
        assert config.azure_devops.organization == "contoso"
        assert config.issues.closed_states == "Fixed,Done"
        assert config.issues.variables == {"ReleaseNumber": "1.4"}
        assert config.timeout == 10.0
        assert provider.validate() == []

    def test_cli_overrides(self, isolated_env):
        (isolated_env / ".issuebridge.yaml").write_text(YAML_CONFIG)
        provider = FileConfigProvider(cli_overrides={"azure_devops.project": "Other", "tracker": None})

        config = provider.load()

        assert config.project == "Other"
        assert provider.get("azure_devops.project") == "Other"

    def test_invalid_file_reported(self, isolated_env):
        path = isolated_env / "broken.yaml"
        path.write_text("a: [\n")
        provider = FileConfigProvider(config_path=path)
        provider.load()

        errors = provider.validate()

        assert any("Invalid YAML syntax" in e for e in errors)

    def test_invalid_value_reported(self, isolated_env):
        path = isolated_env / "c.yaml"
        path.write_text("timeout: soon\n")
        provider = FileConfigProvider(config_path=path)
        provider.load()

        assert any(e.startswith("Invalid configuration") for e in provider.validate())

    def test_set(self, isolated_env):
        provider = FileConfigProvider()
        provider.load()
        provider.set("issues.filter", "X")

        assert provider.get("issues.filter") == "X"


class TestEnvironmentConfigProvider:
    """Tests for EnvironmentConfigProvider."""

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("AZURE_DEVOPS_ORGANIZATION", "contoso")
        monkeypatch.setenv("AZURE_DEVOPS_PAT", "secret")
        monkeypatch.setenv("ISSUEBRIDGE_EXECUTE", "yes")

        provider = EnvironmentConfigProvider()
        config = provider.load()

        assert provider.name == "environment"
        assert config.azure_devops.organization == "contoso"
        assert config.dry_run is False
        assert provider.validate() == []

    def test_precedence(self, isolated_env, monkeypatch):
        (isolated_env / ".issuebridge.yaml").write_text(YAML_CONFIG)
        (isolated_env / ".env").write_text("AZURE_DEVOPS_PROJECT=FromDotEnv\nAZURE_DEVOPS_PAT=dotenv\n")
        monkeypatch.setenv("AZURE_DEVOPS_PAT", "from-env")

        provider = EnvironmentConfigProvider(cli_overrides={"issues.closed_states": "Shipped"})
        config = provider.load()

        assert provider.name == "environment+.issuebridge.yaml"
        assert config.azure_devops.organization == "contoso"
        assert config.azure_devops.project == "FromDotEnv"
        assert config.azure_devops.pat == "from-env"
        assert config.issues.closed_states == "Shipped"

    def test_missing_values_hint(self):
        provider = EnvironmentConfigProvider()
        provider.load()

        errors = provider.validate()

        assert "Missing Azure DevOps configuration" in errors
        assert errors[-1].startswith("No config file found")

    def test_gitlab(self, monkeypatch):
        monkeypatch.setenv("ISSUEBRIDGE_TRACKER", "gitlab")
        monkeypatch.setenv("GITLAB_TOKEN", "glpat")
        monkeypatch.setenv("GITLAB_PROJECT", "group/app")

        config = EnvironmentConfigProvider().load()

        assert config.tracker == TrackerType.GITLAB
        assert config.project == "group/app"

    def test_env_file_syntax(self, isolated_env):
        (isolated_env / ".env").write_text(
            "# comment\n\n"
            "export AZURE_DEVOPS_ORGANIZATION=contoso\n"
            "AZURE_DEVOPS_PAT='two words'\n"
            "AZURE_DEVOPS_PROJECT=\"Fabrikam\"\n"
        )

        config = EnvironmentConfigProvider().load()

        assert config.azure_devops.organization == "contoso"
        assert config.azure_devops.pat == "two words"
        assert config.azure_devops.project == "Fabrikam"

    def test_explicit_env_file(self, tmp_path):
        env_file = tmp_path / "ci.env"
        env_file.write_text("GITLAB_TOKEN=glpat\nISSUEBRIDGE_TRACKER=gitlab\n")

        config = EnvironmentConfigProvider(env_file=env_file).load()

        assert config.tracker == TrackerType.GITLAB
        assert config.gitlab.token == "glpat"
