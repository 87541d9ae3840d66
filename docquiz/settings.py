from dotenv import load_dotenv
load_dotenv(override=False)     # read .env if present, but don't clobber real env

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default

def env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default

def env_str(name: str, default: str) -> str:
    return os.getenv(name, default)

# --- OpenAI ---
OPENAI_API_KEY     = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL    = os.getenv("OPENAI_BASE_URL", "").strip() or None
MODEL              = env_str("DOCQUIZ_MODEL", "gpt-4o-mini")
TEMPERATURE        = env_float("DOCQUIZ_TEMPERATURE", 0.3)
LLM_TIMEOUT        = env_float("DOCQUIZ_LLM_TIMEOUT", 60.0)
LLM_MAX_RETRIES    = env_int("DOCQUIZ_LLM_MAX_RETRIES", 2)

# --- Storage ---
DATA_DIR           = env_str("DOCQUIZ_DATA_DIR", "data")
STORE_FILENAME     = "document-stores.json"

# --- Ingestion limits (env-overridable) ---
MAX_FILE_MB              = env_int("APP_MAX_FILE_MB", 10)
TXT_CHAR_LIMIT           = env_int("APP_TXT_CHAR_LIMIT", 1_000_000)
RTF_CHAR_LIMIT           = env_int("APP_RTF_CHAR_LIMIT", 1_000_000)
DOCX_PARA_LIMIT          = env_int("APP_DOCX_PARA_LIMIT", 50_000)
PPTX_SLIDE_LIMIT         = env_int("APP_PPTX_SLIDE_LIMIT", 2_000)
PDF_PAGE_LIMIT           = env_int("APP_PDF_PAGE_LIMIT", 2_000)
ZIP_UNCOMPRESSED_LIMIT_MB= env_int("APP_ZIP_UNCOMP_MB", 300)
ZIP_COMPRESSION_RATIO_MAX= env_float("APP_ZIP_RATIO_MAX", 200.0)

CHUNK_SIZE               = env_int("DOCQUIZ_CHUNK_SIZE", 1000)
CHUNK_OVERLAP            = env_int("DOCQUIZ_CHUNK_OVERLAP", 200)

# --- Generation / grading ---
Q_INPUT_TOKEN_CAP        = env_int("APP_Q_INPUT_CAP", 12_000)
Q_OUTPUT_TOKENS          = env_int("APP_Q_OUT_CAP", 4_000)
FEEDBACK_MAX_TOKENS      = env_int("DOCQUIZ_FEEDBACK_TOKENS", 200)
COMPARISON_MAX_TOKENS    = env_int("DOCQUIZ_COMPARISON_TOKENS", 600)
SOURCE_CONTEXT_CHARS     = env_int("DOCQUIZ_SOURCE_CONTEXT_CHARS", 4_000)
SUBJECTIVE_POLICY        = env_str("DOCQUIZ_SUBJECTIVE_POLICY", "auto").strip().lower()

LOG_LEVEL                = env_str("DOCQUIZ_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def log_effective_config(logger: logging.Logger) -> None:
    # no secrets
    logger.info("Config: MODEL=%s temperature=%.2f timeout=%ss retries=%d | key_present=%s base_url=%s",
                MODEL, TEMPERATURE, LLM_TIMEOUT, LLM_MAX_RETRIES, bool(OPENAI_API_KEY), bool(OPENAI_BASE_URL))
    logger.info("Limits: MAX_FILE_MB=%d, PDF_PAGE_LIMIT=%d, Q_IN=%d, Q_OUT=%d, SUBJECTIVE=%s",
                MAX_FILE_MB, PDF_PAGE_LIMIT, Q_INPUT_TOKEN_CAP, Q_OUTPUT_TOKENS, SUBJECTIVE_POLICY)
