from pathlib import Path

from pydantic_settings import BaseSettings

CONTENT_DIR = Path(__file__).parent / "content"


class Settings(BaseSettings):
    db_path: Path = Path.home() / ".learn_quest" / "progress.db"
    catalog_path: Path = CONTENT_DIR / "catalog.json"
    username: str = "Gast"
    guest_username: str = "Gast"
    suggestion_limit: int = 5
    min_suggestion_questions: int = 4
    log_level: str = "WARNING"

    model_config = {"env_prefix": "LEARN_QUEST_"}


settings = Settings()
