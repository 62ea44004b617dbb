"""Environment bootstrap: finalize the roots and check the tag tool.

Everything here is fatal on failure. Nothing after bootstrap runs unless
both roots are existing directories and ctags answers like ctags.
"""

import re
import subprocess
from pathlib import Path

from sourcedex.config_runtime import RuntimeConfiguration
from sourcedex.exceptions import BootstrapError, UsageError
from sourcedex.utils.constants import (
    DEFAULT_TOOL_TIMEOUT,
    ENV_TOOL_TIMEOUT,
    SRC_ROOT_MARKER,
    env_int,
)
from sourcedex.utils.helpers import read_first_line
from sourcedex.utils.logging import logger

# Tag generators that understand the options the index engine relies on
SUPPORTED_CTAGS = ("Exuberant Ctags", "Universal Ctags")


def read_source_root_marker(data_root: Path) -> str | None:
    """Return the source root recorded in data_root by a previous run."""
    marker = data_root / SRC_ROOT_MARKER
    if not marker.is_file():
        return None
    return read_first_line(marker)


def _require_directory(path: Path) -> Path:
    if not path.is_dir():
        raise BootstrapError(f"No such directory: {path}")
    return path.resolve()


def resolve_roots(config: RuntimeConfiguration, data_root_arg: str | None) -> None:
    """Finalize config.data_root and config.source_root in place.

    Raises:
        UsageError: If no data root was given at all
        BootstrapError: If no source root can be found or a root is not a directory
    """
    if data_root_arg is not None:
        config.data_root = Path(data_root_arg)

    if config.data_root is None:
        raise UsageError("Please specify a DATA ROOT path")

    config.data_root = _require_directory(config.data_root)

    if config.source_root is None:
        line = read_source_root_marker(config.data_root)
        if line is None:
            raise BootstrapError("Please specify a SRC_ROOT with option -s !")
        logger.debug(f"Using last SRC_ROOT from {config.data_root / SRC_ROOT_MARKER}: {line}")
        config.source_root = Path(line)

    config.source_root = _require_directory(config.source_root)


def detect_ctags_flavor(ctags: str, timeout: int | None = None) -> str | None:
    """Run `ctags --version` and return the supported flavor it reports, if any."""
    if timeout is None:
        timeout = env_int(ENV_TOOL_TIMEOUT, DEFAULT_TOOL_TIMEOUT)
    try:
        result = subprocess.run(
            [ctags, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError, OSError):
        return None

    if result.returncode != 0:
        return None

    output = result.stdout.strip() or result.stderr.strip()
    for flavor in SUPPORTED_CTAGS:
        if re.search(re.escape(flavor), output, re.IGNORECASE):
            return flavor
    return None


def validate_tag_tool(config: RuntimeConfiguration) -> str:
    """Check that config.ctags is a usable Exuberant or Universal ctags.

    Returns:
        The detected flavor

    Raises:
        BootstrapError: If the tool is missing or is some other ctags
    """
    flavor = detect_ctags_flavor(config.ctags)
    if flavor is None:
        raise BootstrapError(
            f"'{config.ctags}' is not a working Exuberant or Universal Ctags. "
            "Install one or point to it with -c."
        )
    logger.debug(f"Using {flavor} at {config.ctags}")
    return flavor
