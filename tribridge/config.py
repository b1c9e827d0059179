"""
Configuration for the bridge, read from the environment, and
optionally from a .env file.
"""

import os
import ssl
import typing
from typing import Mapping, Optional

import attr
from dotenv import find_dotenv, load_dotenv

from tribridge.errors import TribridgeConfigError

TRUTHY = ("1", "true", "yes", "on")
FALSY = ("0", "false", "no", "off")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)

    if value is None or not value.strip():
        return default

    if value.strip().lower() in TRUTHY:
        return True

    if value.strip().lower() in FALSY:
        return False

    raise TribridgeConfigError("{} must be a boolean, got {}".format(name, repr(value)))


def _get_number(env: Mapping[str, str], name: str, default, kind: typing.Callable = float):
    value = env.get(name)

    if value is None or not value.strip():
        return default

    try:
        return kind(value.strip())

    except ValueError:
        raise TribridgeConfigError(
            "{} must be a number, got {}".format(name, repr(value))
        ) from None


@attr.s(auto_attribs=True, frozen=True)
class BridgeConfig:
    """Everything the bridge can be configured with."""

    discord_token: str
    guild_id: int
    operator_id: Optional[str] = None

    irc_host: str = "irc.hackclub.com"
    irc_port: int = 6697
    irc_nickname: str = "DiscordRelay"
    irc_realname: str = "Discord IRC Relay Bot"
    irc_password: Optional[str] = None
    irc_tls: bool = True
    irc_tls_verify: bool = True

    command_prefix: str = "!"
    grouping_capacity: int = 50
    overflow_grouping_name: str = "IRC"
    privileged_grouping_name: str = "IRC Starred"
    mirror_suffix: str = "-irc"

    pre_list_delay: float = 65.0
    list_timeout: float = 15.0
    reconcile_cooldown: float = 10.0
    reconcile_interval: float = 300.0
    reconnect_delay: float = 5.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BridgeConfig":
        """Builds a configuration from environment variables. When no
        mapping is given, a .env file is loaded into os.environ first,
        if one can be found.

            >>> config = BridgeConfig.from_env({'DISCORD_TOKEN': 'abc', 'DISCORD_GUILD_ID': '42'})
            >>> config.guild_id, config.irc_port, config.list_timeout
            (42, 6697, 15.0)

        Keyword Arguments:
            env {Optional[Mapping[str, str]]} -- The variables to read. (default: os.environ)

        Raises:
            TribridgeConfigError: A required variable is missing, or a variable
                                  could not be parsed.

        Returns:
            BridgeConfig -- The configuration.
        """

        if env is None:
            load_dotenv(find_dotenv(usecwd=True))
            env = os.environ

        token = env.get("DISCORD_TOKEN", "").strip()
        guild_id = env.get("DISCORD_GUILD_ID", "").strip()

        missing = [
            name
            for name, value in (("DISCORD_TOKEN", token), ("DISCORD_GUILD_ID", guild_id))
            if not value
        ]

        if missing:
            raise TribridgeConfigError(
                "Missing required configuration: {}".format(", ".join(missing))
            )

        operator_id = env.get("OPERATOR_ID", "").strip() or None

        if operator_id is not None and not operator_id.isdigit():
            raise TribridgeConfigError("OPERATOR_ID must be a Discord user ID")

        return cls(
            discord_token=token,
            guild_id=_get_number(env, "DISCORD_GUILD_ID", None, int),
            operator_id=operator_id,
            irc_host=env.get("IRC_HOST", "").strip() or "irc.hackclub.com",
            irc_port=_get_number(env, "IRC_PORT", 6697, int),
            irc_nickname=env.get("IRC_NICKNAME", "").strip() or "DiscordRelay",
            irc_realname=env.get("IRC_REALNAME", "").strip() or "Discord IRC Relay Bot",
            irc_password=env.get("IRC_PASSWORD") or None,
            irc_tls=_get_bool(env, "IRC_TLS", True),
            irc_tls_verify=_get_bool(env, "IRC_TLS_VERIFY", True),
            command_prefix=env.get("COMMAND_PREFIX", "").strip() or "!",
            grouping_capacity=_get_number(env, "GROUPING_CAPACITY", 50, int),
            overflow_grouping_name=env.get("OVERFLOW_GROUPING_NAME", "").strip() or "IRC",
            privileged_grouping_name=env.get("PRIVILEGED_GROUPING_NAME", "").strip()
            or "IRC Starred",
            mirror_suffix=env.get("MIRROR_SUFFIX", "").strip() or "-irc",
            pre_list_delay=_get_number(env, "PRE_LIST_DELAY", 65.0),
            list_timeout=_get_number(env, "LIST_TIMEOUT", 15.0),
            reconcile_cooldown=_get_number(env, "RECONCILE_COOLDOWN", 10.0),
            reconcile_interval=_get_number(env, "RECONCILE_INTERVAL", 300.0),
            reconnect_delay=_get_number(env, "RECONNECT_DELAY", 5.0),
            log_level=env.get("LOG_LEVEL", "").strip().upper() or "INFO",
        )

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """The SSL context to connect to IRC with, or None without TLS."""

        if not self.irc_tls:
            return None

        context = ssl.create_default_context()

        if not self.irc_tls_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        return context
