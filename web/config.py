"""Configuration settings for the web gateway."""

import os

from common.constants import SERVER_PORT, WEB_PORT


WEB_HOST = os.environ.get("FILESHARE_WEB_HOST", "0.0.0.0")

WEB_PORT = int(os.environ.get("FILESHARE_WEB_PORT", str(WEB_PORT)))

UPSTREAM_HOST = os.environ.get("FILESHARE_SERVER_HOST", "localhost")

UPSTREAM_PORT = int(os.environ.get("FILESHARE_SERVER_PORT", str(SERVER_PORT)))
