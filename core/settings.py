# app/core/settings.py
from __future__ import annotations

import functools
from typing import Literal, Optional

from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

STUDENTS_COLLECTION = "students"


class DBSettings(BaseModel):
    # SQLite only; the documents table uses AUTOINCREMENT.
    url: str = "sqlite:///student_records.db"
    echo: bool = False


class FirebaseSettings(BaseModel):
    # Service-account JSON. When empty, the [firebase] section of
    # .streamlit/secrets.toml is used instead.
    credentials_file: Optional[str] = None
    project_id: Optional[str] = None


class Settings(BaseSettings):
    APP_ID: str = "default-student-app"
    STORE_BACKEND: Literal["sql", "firestore"] = "sql"
    LOG_LEVEL: str = "INFO"
    STUDENTS_REFRESH_SECONDS: float = 2.0
    PERSIST_IDENTITY_IN_URL: bool = True

    db: DBSettings = DBSettings()
    firebase: FirebaseSettings = FirebaseSettings()

    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str) -> str:
        return str(v or "INFO").upper()

    @field_validator("STORE_BACKEND", mode="before")
    def normalize_backend(cls, v: str) -> str:
        return str(v or "sql").strip().lower()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    def partition_path(self, user_id: str) -> str:
        """Collection path that scopes one user's records."""
        return f"artifacts/{self.APP_ID}/users/{user_id}/{STUDENTS_COLLECTION}"


@functools.lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings()
