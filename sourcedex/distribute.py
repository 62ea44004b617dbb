"""Configuration distribution: local file persistence and network push.

A push opens one TCP connection per "host:port" target, sends the JSON
configuration and closes its side of the connection. The listener reads
until EOF and decodes the payload with decode_payload().

Local persistence failures are fatal for the run and propagate. Push
failures are recovered: they are logged and returned as a failed PushResult.
"""

import socket
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from sourcedex.config_runtime import RuntimeConfiguration
from sourcedex.exceptions import DistributionError
from sourcedex.utils.constants import DEFAULT_PUSH_TIMEOUT, ENV_PUSH_TIMEOUT, env_float
from sourcedex.utils.logging import logger

Sender = Callable[[str, int, bytes, float], None]


@dataclass
class PushResult:
    """Outcome of pushing the configuration to one target."""

    target: str
    success: bool
    error: str | None = None


def encode_payload(config: RuntimeConfiguration) -> bytes:
    return config.to_json().encode("utf-8")


def decode_payload(data: bytes) -> RuntimeConfiguration:
    """Listener side: turn a received payload back into a configuration."""
    return RuntimeConfiguration.from_json(data)


def write_configuration(config: RuntimeConfiguration, path: Path) -> Path:
    """Serialize config to path, creating parent directories.

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(config.to_json() + "\n", encoding="utf-8")
    return path


def parse_target(target: str) -> tuple[str, int]:
    """Split "host:port".

    Raises:
        DistributionError: Unless target has exactly two colon-delimited
            fields and a valid port
    """
    fields = target.split(":")
    if len(fields) != 2:
        echoed = "".join(f"[{f}]" for f in fields)
        raise DistributionError(f"Syntax error: {echoed}")

    host, port_text = fields
    if not host:
        raise DistributionError(f"Syntax error: missing host in [{target}]")
    try:
        port = int(port_text)
    except ValueError as e:
        raise DistributionError(f"Syntax error: invalid port [{port_text}]") from e
    if not 0 < port < 65536:
        raise DistributionError(f"Syntax error: port out of range [{port}]")
    return host, port


def send_payload(host: str, port: int, payload: bytes, timeout: float) -> None:
    """Resolve host, connect, send payload and half-close the connection."""
    address = socket.gethostbyname(host)
    with socket.create_connection((address, port), timeout=timeout) as sock:
        sock.sendall(payload)
        sock.shutdown(socket.SHUT_WR)


def push_timeout() -> float:
    return env_float(ENV_PUSH_TIMEOUT, DEFAULT_PUSH_TIMEOUT)


def distribute(
    config: RuntimeConfiguration,
    target: str,
    sender: Sender = send_payload,
    timeout: float | None = None,
) -> PushResult:
    """Push config to one "host:port" target. Never raises for a bad target."""
    if timeout is None:
        timeout = push_timeout()

    try:
        host, port = parse_target(target)
    except DistributionError as e:
        logger.error(str(e))
        return PushResult(target=target, success=False, error=str(e))

    try:
        sender(host, port, encode_payload(config), timeout)
    except (OSError, UnicodeError) as e:
        logger.opt(exception=e if config.verbose else None).error(
            f"Failed to send configuration to {target}: {e}"
        )
        return PushResult(target=target, success=False, error=f"{type(e).__name__}: {e}")

    return PushResult(target=target, success=True)
