# plant_quiz/settings.py
from functools import lru_cache
from pathlib import Path
import os

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists, for local development.
# In production, environment variables should be set directly.
if os.path.exists(".env"):
    from dotenv import load_dotenv
    load_dotenv()

ASSETS_DIR = Path(__file__).resolve().parent.parent / "quiz_engine" / "assets"


class QuizSettings(BaseSettings):
    config_path: Path = ASSETS_DIR / "plant_quiz.yml"
    catalog_path: Path = ASSETS_DIR / "plants.yml"
    auto_advance_delay: float = 0.5  # seconds
    validation_debounce: float = 0.3  # seconds
    result_ttl_days: int = 7
    score_noise: float = 0.1
    tie_window: float = 0.15
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="PLANT_QUIZ_")


@lru_cache()
def get_settings() -> QuizSettings:
    return QuizSettings()
