from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

Difficulty = Literal["Beginner", "Intermediate", "Advanced"]
ContentType = Literal["Video", "PDF"]


class TutorialFields(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    creator: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    content_type: Optional[ContentType] = None
    content_url: Optional[str] = None
    embed_url: Optional[str] = Field(default=None, max_length=1000)
    file_path: Optional[str] = None

    @field_validator(
        "description", "creator", "content_url", "embed_url", "file_path",
        "difficulty", "content_type",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CreateTutorial(TutorialFields):
    title: str = Field(min_length=1, max_length=255)
    category_id: int
    difficulty: Difficulty = "Beginner"
    content_type: ContentType = "Video"


class UpdateTutorial(TutorialFields):
    pass
