"""Runtime settings, read once from the environment (and a local .env)."""

import os

from dotenv import load_dotenv

load_dotenv()

# ------------------- CONFIG -------------------------------------------
GEMINI_API_KEY    = os.environ.get("GEMINI_API_KEY", "")
MODEL_ID          = os.environ.get("ACROFILL_MODEL", "gemini-2.5-flash")
DPI               = int(os.environ.get("ACROFILL_DPI", "150"))
MAX_PAGES         = int(os.environ.get("ACROFILL_MAX_PAGES", "6"))
DESCRIBE_TIMEOUT  = float(os.environ.get("ACROFILL_DESCRIBE_TIMEOUT", "120"))  # seconds
LOG_LEVEL         = os.environ.get("ACROFILL_LOG_LEVEL", "INFO").upper()
# ----------------------------------------------------------------------
