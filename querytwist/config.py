import logging
import os
from dataclasses import dataclass
from typing import Optional

# ================== CONFIG ==================
MODEL_NAME = "gemini-2.5-flash"
TEMPERATURE = 0.1
TRANSLATION_TIMEOUT_S = 30.0
PROFILE_SAMPLE_ROWS = 10
PREVIEW_ROWS = 5
UI_VALIDATION_DELAY_S = 0.4  # only so "Checking syntax..." is visible in the app

SAMPLE_CSV_NAME = "cancer_research_data.csv"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    api_key: str = ""
    model_name: str = MODEL_NAME
    temperature: float = TEMPERATURE
    translation_timeout_s: float = TRANSLATION_TIMEOUT_S
    validation_delay_s: Optional[float] = None  # unset: each caller picks its own default
    validator_fail_open: bool = True
    sample_csv_url: str = ""
    log_level: str = "INFO"

    def validation_delay_or(self, default: float) -> float:
        return default if self.validation_delay_s is None else self.validation_delay_s


def load_settings() -> Settings:
    return Settings(
        api_key=os.getenv("GOOGLE_API_KEY", ""),
        model_name=os.getenv("QUERYTWIST_MODEL") or MODEL_NAME,
        temperature=_env_float("QUERYTWIST_TEMPERATURE", TEMPERATURE),
        translation_timeout_s=_env_float("QUERYTWIST_TRANSLATION_TIMEOUT", TRANSLATION_TIMEOUT_S),
        validation_delay_s=_env_float("QUERYTWIST_VALIDATION_DELAY", None),
        validator_fail_open=_env_bool("QUERYTWIST_VALIDATOR_FAIL_OPEN", True),
        sample_csv_url=os.getenv("QUERYTWIST_SAMPLE_CSV_URL", ""),
        log_level=os.getenv("QUERYTWIST_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
