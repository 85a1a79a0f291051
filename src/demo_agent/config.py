import os
from pathlib import Path

PROJECT_DIR = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_DIR / "data"
STATIC_DIR = PROJECT_DIR / "static"
SQLITE_PATH = Path(os.environ.get("SQLITE_PATH", str(DATA_DIR / "store.db")))

PORT = int(os.environ.get("PORT", "19876"))
ROOT_PATH = os.environ.get("ROOT_PATH", "")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# OpenAI-compatible model provider (OpenRouter by default)
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.environ.get("OPENAI_BASE_URL", "https://openrouter.ai/api/v1")
DEFAULT_MODEL = os.environ.get("DEFAULT_MODEL", "openai/gpt-5")
REPAIR_MODEL = os.environ.get("REPAIR_MODEL", DEFAULT_MODEL)
TEMPERATURE = float(os.environ.get("TEMPERATURE", "0.7"))
MAX_TOKENS = int(os.environ.get("MAX_TOKENS", "40000"))

# Background knowledge lookups
PERPLEXITY_API_KEY = os.environ.get("PERPLEXITY_API_KEY", "").strip()
PERPLEXITY_BASE_URL = os.environ.get("PERPLEXITY_BASE_URL", "https://api.perplexity.ai")
PERPLEXITY_MODEL = os.environ.get("PERPLEXITY_MODEL", "sonar")
KNOWLEDGE_TIMEOUT_SECS = float(os.environ.get("KNOWLEDGE_TIMEOUT_SECS", "45"))

MAX_REPAIR_ATTEMPTS = 3
DEFAULT_CONVERSATION_TITLE = "New conversation"
DEFAULT_EXPERIMENT_TITLE = "Experiment Demo"
