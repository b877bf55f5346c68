"""Load the Grafana API token from a ``.env`` file or the environment.

For local development a ``.env`` file in the project root (or the current
working directory) is read first; values already present in the
environment win.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

TOKEN_ENV_VAR = "GRAFANA_API_TOKEN"
URL_ENV_VAR = "GRAFANA_URL"


def _load_dotenv() -> None:
    """Load variables from the first ``.env`` file found."""
    for env_path in (Path.cwd() / ".env", _PROJECT_ROOT / ".env"):
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.info("Loaded environment from %s", env_path)
            return


def load_secrets() -> dict[str, str]:
    """Return a dict with whichever of the Grafana settings are defined.

    Neither key is required: anonymous Grafana instances need no token,
    and the URL can come from the command line.
    """
    _load_dotenv()

    secrets: dict[str, str] = {}
    for key in (TOKEN_ENV_VAR, URL_ENV_VAR):
        value = os.environ.get(key)
        if value:
            secrets[key] = value

    if TOKEN_ENV_VAR not in secrets:
        logger.info("%s not set; requests will be sent without authentication", TOKEN_ENV_VAR)
    return secrets
