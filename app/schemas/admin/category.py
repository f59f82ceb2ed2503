from typing import Optional

from pydantic import BaseModel, Field


class CreateCategory(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = None


class UpdateCategory(CreateCategory):
    pass
