import pytest

from proxyssh.adapters.config import AppConfig, ConfigLoader
from proxyssh.core.exceptions import ConfigurationError


CONFIG = """
[ssh]
host_key_policy = "known-hosts"
known_hosts = "~/.ssh/other_known_hosts"
connect_timeout = 15
keepalive = 30

[auth]
challenge = "prompt-all"

[session]
term = "vt100"
width = 100
raw = true

[session.modes]
ECHO = 1
IUTF8 = 1
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "proxyssh.toml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


class TestConfigLoader:
    def test_defaults_without_sources(self):
        config = AppConfig.from_dict(ConfigLoader().load())
        assert config.host_key_policy == "accept-any"
        assert config.challenge == "password-only"
        assert config.connect_timeout is None
        assert config.keepalive == 0
        assert config.raw is False
        assert config.session.term == "dumb"
        assert dict(config.session.modes) == {53: 0, 35: 1, 128: 14400, 129: 14400}

    def test_toml_file(self, config_file):
        config = AppConfig.from_dict(ConfigLoader().load(toml_path=config_file))
        assert config.host_key_policy == "known-hosts"
        assert config.known_hosts == "~/.ssh/other_known_hosts"
        assert config.connect_timeout == 15.0
        assert config.keepalive == 30
        assert config.challenge == "prompt-all"
        assert config.raw is True
        assert config.session.term == "vt100"
        assert config.session.width == 100
        assert config.session.height == 40
        assert dict(config.session.modes) == {53: 1, 42: 1}

    def test_cli_overrides_file(self, config_file):
        overrides = {
            "ssh": {"host_key_policy": "ask", "keepalive": None},
            "session": {"term": "xterm", "width": None, "raw": False},
        }
        config = AppConfig.from_dict(ConfigLoader().load(toml_path=config_file, cli_overrides=overrides))
        assert config.host_key_policy == "ask"
        assert config.keepalive == 30
        assert config.session.term == "xterm"
        assert config.session.width == 100
        assert config.raw is False
        assert dict(config.session.modes) == {53: 1, 42: 1}

    def test_merge_ignores_none(self):
        merged = ConfigLoader().merge_configs({"a": {"b": 1, "c": 2}}, {"a": {"b": None, "c": 3}})
        assert merged == {"a": {"b": 1, "c": 3}}

    def test_merge_into_missing_table_drops_none(self):
        merged = ConfigLoader().merge_configs({}, {"ssh": {"keepalive": None, "known_hosts": "kh"}})
        assert merged == {"ssh": {"known_hosts": "kh"}}

    def test_cli_overrides_without_file_keep_defaults(self):
        overrides = {
            "ssh": {"host_key_policy": None, "known_hosts": None, "connect_timeout": None, "keepalive": None},
            "auth": {"challenge": None},
            "session": {"term": None, "width": None, "height": None, "raw": None},
        }
        config = AppConfig.from_dict(ConfigLoader().load(cli_overrides=overrides))
        assert config.host_key_policy == "accept-any"
        assert config.keepalive == 0
        assert config.challenge == "password-only"
        assert config.raw is False
        assert config.session.term == "dumb"

    def test_none_values_mean_default(self):
        config = AppConfig.from_dict({"ssh": {"keepalive": None, "host_key_policy": None}, "auth": {"challenge": None}})
        assert config.keepalive == 0
        assert config.host_key_policy == "accept-any"
        assert config.challenge == "password-only"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader().load(toml_path=tmp_path / "absent.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[ssh\nkeepalive = ", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Failed to parse"):
            ConfigLoader().load(toml_path=path)


class TestAppConfigValidation:
    @pytest.mark.parametrize("data", [
        {"ssh": {"keepalive": -1}},
        {"ssh": {"keepalive": "often"}},
        {"ssh": {"connect_timeout": 0}},
        {"ssh": {"connect_timeout": "soon"}},
        {"session": {"width": "wide"}},
        {"session": {"height": -5}},
        {"session": {"modes": {"BOGUS": 1}}},
    ])
    def test_rejected(self, data):
        with pytest.raises(ConfigurationError):
            AppConfig.from_dict(data)
