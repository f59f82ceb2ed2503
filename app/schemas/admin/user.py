from typing import Annotated, Any, Optional

from pydantic import BaseModel, EmailStr, Field

ROLE_NAMES = ("user", "moderator", "admin")


class CreateUser(BaseModel):
    # thiếu trường → service trả lỗi 400 với thông báo riêng
    username: Optional[Annotated[str, Field(max_length=50)]] = None
    email: Optional[EmailStr] = None
    password: Optional[Annotated[str, Field(max_length=72)]] = None
    role: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class UpdateUser(BaseModel):
    username: Optional[Annotated[str, Field(min_length=1, max_length=50)]] = None
    email: Optional[EmailStr] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None


class UpdateUserStatus(BaseModel):
    is_active: Any = None


class SetupAdmin(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[Annotated[str, Field(max_length=72)]] = None
    displayName: Optional[str] = None
