"""Runtime settings loaded from the environment (and a .env file if present)."""
import os
from pathlib import Path
from dotenv import load_dotenv


load_dotenv()

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
MODEL = os.getenv("CALL_INSIGHTS_MODEL", "claude-haiku-4-5")

DATA_DIR = Path(os.getenv("CALL_INSIGHTS_DATA_DIR", "data"))
FALLBACK_DIR = os.getenv("CALL_INSIGHTS_FALLBACK_DIR") or None
TRANSCRIPTS_DIR = DATA_DIR / "transcripts"

POLL_INTERVAL = float(os.getenv("CALL_INSIGHTS_POLL_INTERVAL", "5"))
AGGREGATE_THRESHOLD = int(os.getenv("CALL_INSIGHTS_AGGREGATE_THRESHOLD", "10"))
AGGREGATION_INTERVAL = float(os.getenv("CALL_INSIGHTS_AGGREGATION_INTERVAL", "86400"))
MAX_CONCURRENT = int(os.getenv("CALL_INSIGHTS_MAX_CONCURRENT", "10"))
