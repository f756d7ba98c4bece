"""Version lookup for the deployed API."""

import os
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

VERSION_FILE = Path("/app/VERSION")
DISTRIBUTION_NAME = "fos-dashboard"


def get_version() -> str:
    """Get the application version.

    The deployment's VERSION file wins, then the APP_VERSION environment
    variable, then the installed distribution's metadata.

    Returns:
        str: The version string, or 'unknown' if none is available.
    """
    if VERSION_FILE.exists():
        try:
            file_version = VERSION_FILE.read_text().strip()
        except OSError:
            file_version = ""
        if file_version:
            return file_version

    env_version = os.environ.get("APP_VERSION")
    if env_version:
        return env_version

    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "unknown"
