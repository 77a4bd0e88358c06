"""
Client configuration.

Everything the client needs from its environment is captured once in a
Config: where ad's 9P socket lives and whether this process was launched
by ad (ad exports `bufid` to the commands it runs).

    config = Config.from_env()
    config.dial_address()      # "unix!/tmp/ns.me.:0/ad"
"""

import getpass
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BUFID_VAR = "bufid"
ADDRESS_VAR = "AD_ADDRESS"
DEFAULT_SERVICE = "ad"


def namespace_dir(environ: Mapping[str, str]) -> str:
    """
    plan9port namespace directory.

    $NAMESPACE if set, otherwise /tmp/ns.$USER.$DISPLAY with the screen
    suffix (":0.0" -> ":0") dropped and ":0" used when DISPLAY is unset.
    """
    ns = environ.get("NAMESPACE")
    if ns:
        return ns

    user = environ.get("USER") or getpass.getuser()
    display = environ.get("DISPLAY") or ":0"
    if display.endswith(".0"):
        display = display[:-2]

    return f"/tmp/ns.{user}.{display}"


def parse_dial_string(address: str) -> Tuple[str, str, Optional[int]]:
    """
    Parse a dial string: unix!path or tcp!host!port.
    Returns (network, host_or_path, port).
    """
    if "!" not in address:
        raise ValueError(f"Invalid address '{address}'. Expected unix!path or tcp!host!port")

    network, rest = address.split("!", 1)
    if network == "unix":
        if not rest:
            raise ValueError(f"Invalid address '{address}'. Missing socket path")
        return network, rest, None

    if network == "tcp":
        if "!" not in rest:
            raise ValueError(f"Invalid address '{address}'. Expected tcp!host!port")
        host, port_str = rest.rsplit("!", 1)
        return network, host, int(port_str)

    raise ValueError(f"Unknown network '{network}' in address '{address}'")


@dataclass
class Config:
    """Explicit client configuration"""
    editor_context_buffer_id: Optional[str] = None
    namespace: Optional[str] = None
    service: str = DEFAULT_SERVICE
    address: Optional[str] = None  # Dial string, overrides namespace/service

    @property
    def socket_path(self) -> str:
        namespace = self.namespace or namespace_dir(os.environ)
        return os.path.join(namespace, self.service)

    def dial_address(self) -> str:
        return self.address or f"unix!{self.socket_path}"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> 'Config':
        """
        Build a Config from the process environment.

        A .env file (or dotenv_path) is loaded into os.environ first, so a
        user profile can set NAMESPACE or AD_ADDRESS for every script.
        Passing environ skips the process environment entirely.
        """
        if environ is None:
            if load_dotenv(dotenv_path):
                logger.debug(f"Loaded profile from {dotenv_path or '.env'}")
            environ = os.environ

        return cls(
            editor_context_buffer_id=environ.get(BUFID_VAR) or None,
            namespace=namespace_dir(environ),
            address=environ.get(ADDRESS_VAR) or None,
        )


def in_editor_context(config: Config) -> bool:
    """True when the process was launched by ad"""
    return bool(config.editor_context_buffer_id)
