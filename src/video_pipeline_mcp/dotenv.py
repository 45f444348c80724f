"""Load provider/storage credentials from a shared ``.env`` file.

The MCP host often launches the server with a bare environment, so
credentials live in ``~/.config/video-pipeline-mcp/.env``. Values already
present in the process environment win, except blanks and unresolved
``${VAR}`` placeholders which some hosts pass through verbatim.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ENV_PATH = Path.home() / ".config" / "video-pipeline-mcp" / ".env"

_QUOTES = ('"', "'")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def _needs_value(key: str, current: str | None) -> bool:
    """True when *current* should be overwritten by the file value."""
    if current is None:
        return True
    current = _unquote(current.strip()).strip()
    if not current:
        return True
    if current in (f"${key}", f"${{{key}}}"):
        return True
    return current.startswith(f"${{{key}:-") and current.endswith("}")


def parse_dotenv(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines from *path*.

    Handles optional ``export`` prefixes, single/double quotes, blank lines
    and ``#`` comments. Lines without ``=`` are ignored. Missing files
    produce an empty dict.
    """
    if not path.is_file():
        return {}

    parsed: dict[str, str] = {}
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        line = line.removeprefix("export ")
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        parsed[key] = _unquote(value.strip())
    return parsed


def load_dotenv(path: Path | None = None) -> dict[str, str]:
    """Inject vars from *path* (default :data:`DEFAULT_ENV_PATH`) into ``os.environ``.

    Returns:
        The subset of variables that were actually written.
    """
    injected: dict[str, str] = {}
    for key, value in parse_dotenv(path or DEFAULT_ENV_PATH).items():
        if _needs_value(key, os.environ.get(key)):
            os.environ[key] = value
            injected[key] = value
    return injected
