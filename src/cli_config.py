"""CLI configuration overrides for runtime tunables.

Keeps the entrypoint slim. Values are layered onto ``Constants`` with the
precedence CLI flags > environment variables > YAML config > defaults.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)


def _split_urls(value: str):
    return [u.strip() for u in value.split(",") if u.strip()]


def apply_yaml_config(config: Dict[str, Any]) -> None:
    """Apply values from a parsed YAML config onto Constants."""
    if not config:
        return

    urls = config.get("catalog_urls")
    if isinstance(urls, str):
        urls = _split_urls(urls)
    if urls:
        Constants.CATALOG_URLS = list(urls)
    if config.get("strict") is not None:
        Constants.STRICT_RESOLUTION = bool(config["strict"])
    if config.get("platform"):
        Constants.PLATFORM = str(config["platform"])
    if config.get("provider"):
        Constants.PROVIDER = str(config["provider"])

    http = config.get("http") or {}
    if not isinstance(http, dict):
        logger.warning("Ignoring non-mapping 'http' section in config")
        return
    try:
        if http.get("timeout") is not None:
            Constants.REQUEST_TIMEOUT = int(http["timeout"])
        if http.get("retries") is not None:
            Constants.HTTP_RETRY_MAX = max(1, int(http["retries"]))
    except (TypeError, ValueError) as exc:
        logger.warning("Ignoring invalid http config value: %s", exc)


def apply_env_overrides(environ: Optional[Dict[str, str]] = None) -> None:
    """Apply IASCABLE_* environment variables onto Constants."""
    env = os.environ if environ is None else environ
    if env.get(Constants.ENV_CATALOG_URLS):
        Constants.CATALOG_URLS = _split_urls(env[Constants.ENV_CATALOG_URLS])
    if env.get(Constants.ENV_PLATFORM):
        Constants.PLATFORM = env[Constants.ENV_PLATFORM]
    if env.get(Constants.ENV_PROVIDER):
        Constants.PROVIDER = env[Constants.ENV_PROVIDER]


def apply_cli_overrides(args) -> None:
    """Apply parsed CLI flags onto Constants (highest precedence)."""
    if getattr(args, "CATALOG_URLS", None):
        Constants.CATALOG_URLS = list(args.CATALOG_URLS)
    if getattr(args, "STRICT", None) is not None:
        Constants.STRICT_RESOLUTION = bool(args.STRICT)
    if getattr(args, "PLATFORM", None):
        Constants.PLATFORM = args.PLATFORM
    if getattr(args, "PROVIDER", None):
        Constants.PROVIDER = args.PROVIDER


def apply_config_overrides(args, config: Optional[Dict[str, Any]] = None) -> None:
    """Layer YAML config, environment and CLI flags onto Constants.

    When ``config`` is None the YAML file named by ``--config`` (or the first
    discovered default location) is loaded.
    """
    if config is None:
        config = _load_yaml_config(getattr(args, "CONFIG", None))
    apply_yaml_config(config)
    apply_env_overrides()
    apply_cli_overrides(args)
    logger.debug(
        "Effective configuration: catalogs=%s strict=%s platform=%s provider=%s",
        Constants.CATALOG_URLS, Constants.STRICT_RESOLUTION, Constants.PLATFORM, Constants.PROVIDER,
    )
