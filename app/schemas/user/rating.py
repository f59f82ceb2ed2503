from typing import Optional, Union

from pydantic import BaseModel


class CastVote(BaseModel):
    content_type: Optional[str] = None
    content_id: Optional[Union[int, str]] = None
    vote: Optional[str] = None
