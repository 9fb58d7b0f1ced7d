"""Configuration management for provenance-downloader.

Values are looked up in order: environment variable, options object passed to
`initialize()`, the `[downloader]` section of the ini file named by
PROVENANCE_DOWNLOADER_CONFIG, then the built-in default.
"""

from __future__ import annotations

import configparser
import logging
import os
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROVENANCE_DOWNLOADER_CONFIG"
CONFIG_SECTION = "downloader"

# Module-level config cache
_config: Optional[Dict[str, Any]] = None
_options: Optional[Any] = None  # Options object of an embedding application


def initialize(options: Any) -> None:
    """Initialize config module with an already parsed options object.

    Attributes named `downloader_<key>` on the object take precedence over the
    config file.

    Args:
        options: Parsed options object (e.g. an argparse Namespace)
    """
    global _options
    _options = options
    logger.debug("Config module initialized with options object")


def _parse_config_file(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Parse the [downloader] section of an ini file.

    Args:
        config_file: Path to config file. If None, no file is read.

    Returns:
        Dict of raw string values, empty when the file or section is missing
    """
    if not config_file:
        return {}

    parser = configparser.ConfigParser()
    try:
        read = parser.read(config_file)
    except configparser.Error as exc:
        logger.warning("Failed to parse config file %s: %s", config_file, exc)
        return {}

    if not read:
        logger.warning("Config file %s not found, using defaults", config_file)
        return {}
    if not parser.has_section(CONFIG_SECTION):
        logger.debug("Config file %s has no [%s] section", config_file, CONFIG_SECTION)
        return {}
    return dict(parser.items(CONFIG_SECTION))


def _get_config() -> Dict[str, Any]:
    """Get parsed config dict, initializing if needed."""
    global _config
    if _config is None:
        _config = _parse_config_file(os.environ.get(CONFIG_ENV_VAR))
    return _config


def _get_config_value(
    key: str,
    default: Any,
    env_var: Optional[str] = None,
    converter: Optional[Callable[[Any], Any]] = None,
) -> Any:
    """Get config value with fallback chain: env var -> options -> config file -> default.

    Args:
        key: Config key name (in [downloader] section)
        default: Default value if not found
        env_var: Optional environment variable name
        converter: Optional function to convert string value (e.g., int, bool)

    Returns:
        Config value (converted if converter provided)
    """
    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            if converter:
                try:
                    return converter(env_value)
                except (ValueError, TypeError):
                    logger.warning(
                        "Invalid value for %s: %s, using default", env_var, env_value
                    )
                    return default
            return env_value

    if _options is not None:
        option_key = f"downloader_{key}"
        value = getattr(_options, option_key, None)
        if value is not None:
            if converter and isinstance(value, str):
                try:
                    return converter(value)
                except (ValueError, TypeError):
                    logger.warning("Invalid value for %s: %s, using default", key, value)
                    return default
            return value

    value = _get_config().get(key)
    if value is not None:
        if converter:
            try:
                return converter(value)
            except (ValueError, TypeError):
                logger.warning(
                    "Invalid value for config key %s: %s, using default", key, value
                )
                return default
        return value

    return default


def _parse_bool(value: Any) -> bool:
    """Parse boolean value from config (string or bool).

    Accepts: True, "true", "True", "1", "yes", "on" -> True
             False, "false", "False", "0", "no", "off" -> False
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_timeout(value: Any) -> int:
    timeout = int(value)
    if timeout < 0:
        raise ValueError(f"negative timeout: {value}")
    return timeout


def _parse_list(value: Any) -> List[str]:
    """Parse a comma or space separated list ("git,mercurial")."""
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item for item in str(value).replace(",", " ").split() if item]


def stacktrace_enabled() -> bool:
    """Print stack traces of recoverable failures (diagnostics only)."""
    return _get_config_value(
        "stacktrace",
        False,
        env_var="PROVENANCE_DOWNLOADER_STACKTRACE",
        converter=_parse_bool,
    )


def command_timeout() -> int:
    """Per-command timeout in seconds, 0 disables it."""
    return _get_config_value(
        "command_timeout",
        0,
        env_var="PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT",
        converter=_parse_timeout,
    )


def hg_command() -> str:
    """Mercurial executable."""
    return _get_config_value(
        "hg_command",
        "hg",
        env_var="PROVENANCE_DOWNLOADER_HG_COMMAND",
    )


def git_command() -> str:
    """Git executable."""
    return _get_config_value(
        "git_command",
        "git",
        env_var="PROVENANCE_DOWNLOADER_GIT_COMMAND",
    )


def enabled_providers() -> List[str]:
    """Provider names in registration order, which is also URL probing order."""
    return _get_config_value(
        "providers",
        ["git", "mercurial"],
        env_var="PROVENANCE_DOWNLOADER_PROVIDERS",
        converter=_parse_list,
    )


def runner_backend() -> str:
    """Command runner: 'local' | 'podman'."""
    return _get_config_value(
        "runner",
        "local",
        env_var="PROVENANCE_DOWNLOADER_RUNNER",
    )


def podman_socket() -> str:
    """Podman socket URI used by the podman runner.

    URI format expected by podman-py PodmanClient:
    - unix:///var/run/podman.sock (local Unix socket)
    - http+unix:///var/run/podman.sock (HTTP over Unix socket)
    """
    return _get_config_value(
        "podman_socket",
        "unix:///var/run/podman.sock",
        env_var="PROVENANCE_DOWNLOADER_PODMAN_SOCKET",
    )


def podman_container() -> str:
    """Name or id of the running container the podman runner executes in."""
    return _get_config_value(
        "podman_container",
        "",
        env_var="PROVENANCE_DOWNLOADER_PODMAN_CONTAINER",
    )


def reset_config() -> None:
    """Reset config cache (useful for testing)."""
    global _config, _options
    _config = None
    _options = None
