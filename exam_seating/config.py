from functools import lru_cache
from pathlib import Path
from typing import List, NamedTuple, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ASSIGNMENT_TABLE = "invig_assignments"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = Field(default="sqlite:///./exam_seating.db")

    # explicit name skips table probing
    INVIGILATION_TABLE: Optional[str] = None
    INVIGILATION_TABLE_CANDIDATES: List[str] = Field(
        default=[
            "invig_assignments",
            "invigilation_assignments",
            "invigilator_assignments",
            "invig_assign",
        ]
    )

    DEFAULT_INVIGILATORS_PER_ROOM: int = 1
    MATCH_ALL_SUBJECT_CODES: bool = False

    EXPORT_DIR: Path = Field(default=Path("exports"))
    LOG_LEVEL: str = "INFO"

    @field_validator("DEFAULT_INVIGILATORS_PER_ROOM")
    @classmethod
    def per_room_positive(cls, value):
        if value < 1:
            raise ValueError("DEFAULT_INVIGILATORS_PER_ROOM must be at least 1")
        return value


class AllocatorConfig(NamedTuple):
    """Values resolved once at startup and handed to both engines."""

    assignment_table: str = DEFAULT_ASSIGNMENT_TABLE
    per_room: int = 1
    match_all_subject_codes: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
