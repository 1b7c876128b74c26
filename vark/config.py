"""Configuration constants and .env loading.

WHY: Centralizes every tunable value (size budget, debounce delay, storage
location, vendor endpoints) so they are easy to find, update, and override
without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are plain
module-level values read from the environment with sensible defaults.

RULES:
- MAX_LOCATOR_LENGTH is the safe ceiling for a full share link payload
- SAVE_DELAY_S is the debounce window after the last edit
- Credential records are keyed as STORAGE_PREFIX + provider key
- All defaults can be overridden via environment variables
- API keys are never read here; they belong to the credential store
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the tool is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Locator budget and commit timing
# ---------------------------------------------------------------------------

MAX_LOCATOR_LENGTH = int(os.getenv("VARK_MAX_LOCATOR_LENGTH", "2048"))
"""Safe URL length limit, including the one-character fragment delimiter."""

SAVE_DELAY_S = int(os.getenv("VARK_SAVE_DELAY_MS", "1000")) / 1000.0

LOCATOR_DELIMITER = "#"

# ---------------------------------------------------------------------------
# Page metadata
# ---------------------------------------------------------------------------

APP_NAME = "Vark"
TITLE_PREVIEW_LENGTH = 50
DESCRIPTION_LENGTH = 160
DEFAULT_DESCRIPTION = "Minimal markdown editor that lives in your browser's URL"

# ---------------------------------------------------------------------------
# Credential storage
# ---------------------------------------------------------------------------

STORAGE_PREFIX = "vark-provider-"
STORAGE_BACKEND = os.getenv("VARK_STORAGE", "file").lower()
CONFIG_DIR = Path(os.getenv("VARK_CONFIG_DIR", str(Path.home() / ".vark"))).expanduser()
CONFIG_FILENAME = "config.json"

# ---------------------------------------------------------------------------
# Provider endpoints
# ---------------------------------------------------------------------------

HTTP_TIMEOUT_S = float(os.getenv("VARK_HTTP_TIMEOUT_S", "60"))

OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")

GOOGLE_BASE_URL = os.getenv("GOOGLE_SPEECH_BASE_URL", "https://speech.googleapis.com/v1")
GOOGLE_LANGUAGE_CODE = os.getenv("GOOGLE_LANGUAGE_CODE", "en-US")

SONIOX_BASE_URL = os.getenv("SONIOX_BASE_URL", "https://api.soniox.com/v1")
SONIOX_MODEL = os.getenv("SONIOX_MODEL", "stt-async-v4")

DEFAULT_PROVIDER = os.getenv("VARK_PROVIDER", "openai")
