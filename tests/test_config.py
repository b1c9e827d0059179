import ssl

import pytest

from tribridge.config import BridgeConfig
from tribridge.errors import TribridgeConfigError

REQUIRED = {"DISCORD_TOKEN": "token", "DISCORD_GUILD_ID": "1234"}


def config(**env):
    return BridgeConfig.from_env(dict(REQUIRED, **env))


def test_defaults():
    result = config()

    assert result.discord_token == "token"
    assert result.guild_id == 1234
    assert result.operator_id is None
    assert (result.irc_host, result.irc_port) == ("irc.hackclub.com", 6697)
    assert result.grouping_capacity == 50
    assert result.mirror_suffix == "-irc"
    assert result.pre_list_delay == 65.0
    assert result.reconnect_delay == 5.0


def test_overrides():
    result = config(
        OPERATOR_ID="42",
        IRC_PORT="6667",
        IRC_TLS="no",
        GROUPING_CAPACITY="10",
        RECONCILE_COOLDOWN="2.5",
        LOG_LEVEL="debug",
    )

    assert result.operator_id == "42"
    assert result.irc_port == 6667
    assert not result.irc_tls
    assert result.ssl_context() is None
    assert result.grouping_capacity == 10
    assert result.reconcile_cooldown == 2.5
    assert result.log_level == "DEBUG"


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_required_settings(missing):
    env = dict(REQUIRED)
    del env[missing]

    with pytest.raises(TribridgeConfigError, match=missing):
        BridgeConfig.from_env(env)


@pytest.mark.parametrize(
    "env",
    [
        {"DISCORD_GUILD_ID": "my guild"},
        {"IRC_PORT": "sixty-six"},
        {"IRC_TLS": "maybe"},
        {"OPERATOR_ID": "@admin"},
    ],
)
def test_bad_values(env):
    with pytest.raises(TribridgeConfigError):
        config(**env)


def test_tls_verification_can_be_disabled():
    context = config(IRC_TLS_VERIFY="false").ssl_context()

    assert context.verify_mode == ssl.CERT_NONE
    assert not context.check_hostname

    assert config().ssl_context().verify_mode == ssl.CERT_REQUIRED
