"""Tests for configuration loading and validation."""

import pytest
import toml
from pydantic import ValidationError

from speardrive.data.config import (
    GitlabConfig,
    LocalSourceConfig,
    SpeardriveConfig,
    example_config,
    find_config_file,
    load_and_validate_config,
)
from speardrive.repogen import RepoType

MINIMAL = {"composites_cache": "/var/cache/speardrive"}


def test_defaults():
    config = SpeardriveConfig.model_validate(MINIMAL)
    assert config.listen_addr == "127.0.0.1:4444"
    assert not config.log.debug
    assert list(config.generators) == [RepoType.RPM]
    assert config.generators[RepoType.RPM].command is None


@pytest.mark.parametrize(
    "listen_addr,expected",
    [
        ("127.0.0.1:4444", (None, "127.0.0.1", 4444)),
        ("[::1]:8080", (None, "::1", 8080)),
        ("unix:/run/speardrive.sock", ("/run/speardrive.sock", None, None)),
    ],
)
def test_listen_addr(listen_addr: str, expected):
    config = SpeardriveConfig.model_validate(MINIMAL | {"listen_addr": listen_addr})
    assert config.get_path_host_port() == expected


@pytest.mark.parametrize("listen_addr", ["localhost", ":80", "host:http", "host:0", "unix:"])
def test_bad_listen_addr(listen_addr: str):
    with pytest.raises(ValidationError):
        SpeardriveConfig.model_validate(MINIMAL | {"listen_addr": listen_addr})


def test_duplicate_source_names():
    with pytest.raises(ValidationError):
        SpeardriveConfig(
            composites_cache="/c",
            gitlabs={"dup": GitlabConfig(api_key="k", hostname="h", local_cache="/l")},
            local_sources={"dup": LocalSourceConfig(root="/r")},
        )


@pytest.mark.parametrize("name", ["rpm", "_status", "-x", "a/b", ""])
def test_bad_source_names(name: str):
    with pytest.raises(ValidationError):
        SpeardriveConfig.model_validate(MINIMAL | {"local_sources": {name: {"root": "/r"}}})


def test_unknown_generator():
    with pytest.raises(ValidationError):
        SpeardriveConfig.model_validate(MINIMAL | {"generators": {"deb": {}}})


def test_gitlab_api_base_url():
    https = GitlabConfig(api_key="k", hostname="git.example.com", local_cache="/l")
    assert https.api_base_url() == "https://git.example.com/api/v4"
    plain = GitlabConfig(api_key="k", hostname="http://localhost:8080/", local_cache="/l")
    assert plain.api_base_url() == "http://localhost:8080/api/v4"


def test_load(tmp_path):
    config_file = tmp_path / "speardrive.toml"
    config_file.write_text(
        """
        listen_addr = "0.0.0.0:80"
        composites_cache = "/var/cache/speardrive"

        [log]
        debug = true

        [gitlabs.myserver]
        api_key = "key"
        hostname = "git.example.com"
        local_cache = "/var/cache/speardrive-gitlab"

        [generators.rpm]
        command = ["createrepo_c", "--general-compress-type=zstd"]
        """
    )
    config = load_and_validate_config(str(config_file), SpeardriveConfig)
    assert config.log.debug
    assert config.gitlabs["myserver"].hostname == "git.example.com"
    assert config.generators[RepoType.RPM].command == [
        "createrepo_c",
        "--general-compress-type=zstd",
    ]


@pytest.mark.parametrize(
    "contents",
    [
        "this is not = toml = at all",
        'listen_addr = "0.0.0.0:80"\n',
        'composites_cache = "/c"\nlisten_addr = "nope"\n',
    ],
)
def test_load_failure_exits(tmp_path, contents: str):
    config_file = tmp_path / "speardrive.toml"
    config_file.write_text(contents)
    with pytest.raises(SystemExit) as excinfo:
        load_and_validate_config(str(config_file), SpeardriveConfig)
    assert excinfo.value.code == 1


def test_load_missing_file_exits(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        load_and_validate_config(str(tmp_path / "missing.toml"), SpeardriveConfig)
    assert excinfo.value.code == 1


def test_find_config_file(monkeypatch):
    monkeypatch.delenv("SPEARDRIVE_CONFIG_PATH", raising=False)
    monkeypatch.delenv("SPEARDRIVE_CFG_DIR", raising=False)
    assert find_config_file() == "/etc/speardrive/speardrive.toml"

    monkeypatch.setenv("SPEARDRIVE_CFG_DIR", "/opt/sd")
    assert find_config_file() == "/opt/sd/speardrive.toml"

    monkeypatch.setenv("SPEARDRIVE_CONFIG_PATH", "/tmp/sd.toml")
    assert find_config_file() == "/tmp/sd.toml"

    assert find_config_file("/explicit.toml") == "/explicit.toml"


def test_example_config_round_trips():
    dumped = toml.dumps(example_config().model_dump(mode="json", exclude_none=True))
    assert SpeardriveConfig.model_validate(toml.loads(dumped)) == example_config()


def test_environment_overrides(tmp_path, monkeypatch):
    config_file = tmp_path / "speardrive.toml"
    config_file.write_text(
        """
        composites_cache = "/var/cache/speardrive"

        [gitlabs.myserver]
        api_key = "from-file"
        hostname = "git.example.com"
        local_cache = "/var/cache/speardrive-gitlab"
        """
    )
    monkeypatch.setenv("SPEARDRIVE__LISTEN_ADDR", "0.0.0.0:8080")
    monkeypatch.setenv("SPEARDRIVE__LOG__DEBUG", "true")
    monkeypatch.setenv("SPEARDRIVE__GITLABS__MYSERVER__API_KEY", "from-env")

    config = load_and_validate_config(str(config_file), SpeardriveConfig)

    assert config.listen_addr == "0.0.0.0:8080"
    assert config.log.debug
    assert config.gitlabs["myserver"].api_key == "from-env"
    assert config.gitlabs["myserver"].hostname == "git.example.com"
    assert config.composites_cache == "/var/cache/speardrive"


def test_unrelated_environment_ignored(tmp_path, monkeypatch):
    monkeypatch.setenv("SPEARDRIVE_CONFIG_PATH", str(tmp_path / "elsewhere.toml"))
    config_file = tmp_path / "speardrive.toml"
    config_file.write_text('composites_cache = "/c"\n')
    config = load_and_validate_config(str(config_file), SpeardriveConfig)
    assert config.composites_cache == "/c"
