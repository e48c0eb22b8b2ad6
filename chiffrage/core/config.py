from functools import lru_cache
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Charger les variables d'environnement avant l'initialisation de Settings
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore',
    )

    DATABASE_URL: str = 'sqlite:///./chiffrage.db'
    SQL_ECHO: bool = False
    LOG_LEVEL: str = 'INFO'

    # Le recalcul du prix de vente projet est exécuté après le commit
    DEFER_PROJECT_CASCADE: bool = True

    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]
    API_PREFIX: str = '/api/v1'


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
