"""Constants used in the project."""

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3


class OutputFormats(Enum):
    """Output formats supported by the resolve command.

    Args:
        Enum (string): Output formats supported by the program.
    """

    YAML = "yaml"
    JSON = "json"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DEFAULT_CATALOG_URL = "https://modules.cloudnativetoolkit.dev/index.yaml"
    SUPPORTED_FORMATS = [
        OutputFormats.YAML.value,
        OutputFormats.JSON.value,
    ]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "IASCABLE_LOG_LEVEL"
    ENV_CONFIG = "IASCABLE_CONFIG"
    ENV_CATALOG_URLS = "IASCABLE_CATALOG_URLS"
    ENV_PLATFORM = "IASCABLE_PLATFORM"
    ENV_PROVIDER = "IASCABLE_PROVIDER"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300

    # Resolution defaults
    STRICT_RESOLUTION = True
    PLATFORM = None
    PROVIDER = None
    CATALOG_URLS = []

    # Catalog document markers
    CATALOG_KIND = "Catalog"
    BOM_KIND = "BillOfMaterial"
    CATALOG_API_V2 = "cloudnativetoolkit.dev/v2"
    BOM_API_VERSION = "cloud.ibm.com/v1alpha1"
    WILDCARD_DISCRIMINATOR = "*"
    IBM_PROVIDER = "ibm"


def _config_candidates():
    """Return config file locations in priority order."""
    candidates = []
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        candidates.append(env_path)
    candidates.extend([
        os.path.join(os.getcwd(), "iascable.yml"),
        os.path.join(os.getcwd(), "iascable.yaml"),
        os.path.join(os.path.expanduser("~"), ".config", "iascable", "iascable.yml"),
    ])
    return candidates


def _load_yaml_config(path=None):
    """Load the first available YAML config file.

    Args:
        path (str, optional): Explicit config path; skips discovery when given.

    Returns:
        dict: Parsed configuration, or an empty dict when no file is found.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    paths = [path] if path else _config_candidates()
    for candidate in paths:
        if not candidate or not os.path.isfile(candidate):
            continue
        with open(candidate, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            logger.warning("Ignoring config file without a mapping at top level: %s", candidate)
            return {}
        logger.debug("Loaded config from %s", candidate)
        return data
    return {}
