from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

BookType = Literal["file", "link", "purchase"]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _loose_int(value: Any) -> Optional[int]:
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("must be a number")
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ValueError("must be a number")


def _loose_decimal(value: Any) -> Optional[Decimal]:
    value = _blank_to_none(value)
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError("must be a number")


class BookFields(BaseModel):
    """Everything an admin may send for a book; all optional here."""

    title: Optional[str] = None
    author: Optional[str] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    isbn: Optional[str] = None
    published_year: Optional[int] = None
    page_count: Optional[int] = None

    book_type: Optional[str] = None
    file_path: Optional[str] = None
    file_content: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None
    external_link: Optional[str] = None
    purchase_link: Optional[str] = None
    price: Optional[Decimal] = None
    currency: Optional[str] = None

    cover_image_path: Optional[str] = None
    cover_image_base64: Optional[str] = None
    cover_image_type: Optional[str] = None

    @field_validator("published_year", "page_count", "file_size", "category_id", mode="before")
    @classmethod
    def parse_int(cls, v):
        return _loose_int(v)

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v):
        return _loose_decimal(v)

    @field_validator(
        "description", "isbn", "file_path", "file_content", "file_type",
        "external_link", "purchase_link", "currency", "cover_image_path",
        "cover_image_base64", "cover_image_type", "book_type",
        mode="before",
    )
    @classmethod
    def strip_blank(cls, v):
        return _blank_to_none(v)


class CreateBook(BookFields):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    category_id: int
    book_type: Optional[str] = "file"


class UpdateBook(BookFields):
    pass


class UpdateBookCover(BaseModel):
    cover_image_path: Optional[str] = None
    cover_image_base64: Optional[str] = None
    cover_image_type: Optional[str] = None


class GenerateThumbnail(BaseModel):
    filePath: str = ""
    type: str = ""


# ==============================
# 🏷️ VARIANTS (tagged union on book_type)
# ==============================


class FileVariant(BaseModel):
    book_type: Literal["file"]
    file_path: Optional[str] = None
    file_content: Optional[str] = None
    file_size: Optional[int] = None
    file_type: Optional[str] = None

    @model_validator(mode="after")
    def require_location(self):
        if not self.file_path and not self.file_content:
            raise ValueError("file_path is required for file type books")
        return self


class LinkVariant(BaseModel):
    book_type: Literal["link"]
    external_link: str = Field(min_length=1)


class PurchaseVariant(BaseModel):
    book_type: Literal["purchase"]
    purchase_link: str = Field(min_length=1)
    price: Optional[Decimal] = None
    currency: str = "USD"


BookVariant = Annotated[
    Union[FileVariant, LinkVariant, PurchaseVariant],
    Field(discriminator="book_type"),
]

book_variant_adapter: TypeAdapter[BookVariant] = TypeAdapter(BookVariant)

VARIANT_FIELDS = (
    "file_path",
    "file_content",
    "file_size",
    "file_type",
    "external_link",
    "purchase_link",
    "price",
    "currency",
)
