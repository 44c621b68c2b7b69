import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Paths
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
OUTPUT_DIR = PROJECT_ROOT / "output"


# API Keys -- check Streamlit secrets first, then .env / os.environ
def _get_secret(key, default=""):
    """Read from st.secrets (Streamlit Cloud) or os.environ (.env local)."""
    try:
        import streamlit as st
        if key in st.secrets:
            return st.secrets[key]
    except Exception:
        pass
    return os.getenv(key, default)


def _get_number(key, default, cast=float):
    """Numeric setting with fallback to the default on bad input."""
    raw = _get_secret(key, "")
    if raw in ("", None):
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError):
        print(f"[WARN] {key}={raw!r} is not a valid number, using {default}")
        return default


ANTHROPIC_API_KEY = _get_secret("ANTHROPIC_API_KEY")
OPENAI_API_KEY = _get_secret("OPENAI_API_KEY")


def _default_provider():
    if ANTHROPIC_API_KEY:
        return "anthropic"
    if OPENAI_API_KEY:
        return "openai"
    return "none"


LLM_PROVIDER = (_get_secret("LLM_PROVIDER") or _default_provider()).lower()
LLM_TIMEOUT_SECONDS = _get_number("LLM_TIMEOUT_SECONDS", 20.0)
LLM_MAX_RETRIES = _get_number("LLM_MAX_RETRIES", 2, int)

# Column classification heuristics
CLASSIFY_SAMPLE_SIZE = _get_number("CLASSIFY_SAMPLE_SIZE", 100, int)
CLASSIFY_THRESHOLD = _get_number("CLASSIFY_THRESHOLD", 0.7)

# Conversation turns forwarded to the language model
HISTORY_TURNS = _get_number("HISTORY_TURNS", 5, int)

DEFAULT_TABLE_NAME = "Data"


# Validate
def validate_keys():
    issues = []
    if LLM_PROVIDER == "anthropic" and not ANTHROPIC_API_KEY:
        issues.append("LLM_PROVIDER is anthropic but ANTHROPIC_API_KEY not set")
    if LLM_PROVIDER == "openai" and not OPENAI_API_KEY:
        issues.append("LLM_PROVIDER is openai but OPENAI_API_KEY not set")
    if LLM_PROVIDER not in ("anthropic", "openai", "none"):
        issues.append(f"Unknown LLM_PROVIDER '{LLM_PROVIDER}'")
    if not 0 < CLASSIFY_THRESHOLD <= 1:
        issues.append("CLASSIFY_THRESHOLD must be in (0, 1]")
    return issues
