"""Environment variable utilities.

Expands ${VAR_NAME} references in credentials and query overrides, loads
.env files, and reads the CAMPAIGN_* runtime settings.

Uses python-dotenv for .env file loading.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

__all__ = [
    "expand_env_vars",
    "expand_options",
    "load_env_file",
    "get_env_int",
    "get_env_path",
]

# Pattern for ${VAR_NAME} or $VAR_NAME
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")

# Only ${VAR_NAME}; bare $word is left alone (query expressions use it)
BRACED_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def load_env_file(
    path: Optional[Union[str, Path]] = None,
    *,
    override: bool = False,
) -> bool:
    """Load environment variables from a .env file.

    Args:
        path: Path to .env file. If None, searches for .env in current
              directory and parent directories.
        override: If True, override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    return load_dotenv(dotenv_path=path, override=override)


def expand_env_vars(value: str, *, strict: bool = False, braces_only: bool = False) -> str:
    """Expand environment variables in a string.

    Supports both ${VAR_NAME} and $VAR_NAME syntax.

    Args:
        value: String potentially containing env var references
        strict: If True, raise KeyError for missing variables
        braces_only: If True, only ${VAR_NAME} references are expanded

    Returns:
        String with environment variables expanded

    Example:
        >>> os.environ["CAMPAIGN_PASSWORD"] = "s3cret"
        >>> expand_env_vars("${CAMPAIGN_PASSWORD}")
        's3cret'
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(match.lastindex)
        env_value = os.environ.get(var_name)
        if env_value is None:
            if strict:
                raise KeyError(f"Environment variable not set: {var_name}")
            return str(match.group(0))
        return env_value

    pattern = BRACED_ENV_VAR_PATTERN if braces_only else ENV_VAR_PATTERN
    return pattern.sub(replacer, value)


def expand_options(
    options: Dict[str, Any],
    *,
    strict: bool = False,
    braces_only: bool = False,
) -> Dict[str, Any]:
    """Recursively expand environment variables in an options dict.

    Strings inside nested dicts and lists (including lists of dicts, as
    found in query definitions) are expanded; other values are kept.
    With ``braces_only`` a bare $word is kept verbatim.
    """
    result: Dict[str, Any] = {}

    for key, value in options.items():
        result[key] = _expand_value(value, strict=strict, braces_only=braces_only)

    return result


def _expand_value(value: Any, *, strict: bool, braces_only: bool) -> Any:
    if isinstance(value, str):
        return expand_env_vars(value, strict=strict, braces_only=braces_only)
    if isinstance(value, dict):
        return expand_options(value, strict=strict, braces_only=braces_only)
    if isinstance(value, list):
        return [_expand_value(item, strict=strict, braces_only=braces_only) for item in value]
    return value


def get_env_int(name: str, default: int) -> int:
    """Read a positive integer setting, falling back to default when unset or invalid."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", name, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive", name, raw)
        return default
    return value


def get_env_path(name: str, default: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Read a path setting with ~ expansion."""
    raw = os.environ.get(name)
    if raw:
        return Path(raw).expanduser()
    if default is None:
        return None
    return Path(default).expanduser()
