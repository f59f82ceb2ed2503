from typing import Optional

from fastapi import APIRouter, Depends, Header

from app.core.deps import AuthorizationService
from app.schemas.admin.book import UpdateBookCover
from app.services.admin.book import AdminBookService
from app.services.shares import book_content, thumbnail
from app.services.shares.thumbnail import ThumbnailService
from app.services.user.book import BookService

router = APIRouter(prefix="/books", tags=["BOOKS"])


@router.get("")
async def list_books(
    category_id: Optional[int] = None,
    service: BookService = Depends(BookService),
):
    return await service.list_books_async(category_id)


@router.get("/{book_id}")
async def get_book(book_id: int, service: BookService = Depends(BookService)):
    return await service.get_book_async(book_id)


@router.get("/{book_id}/download")
async def download_book(book_id: int, service: BookService = Depends(BookService)):
    result = await service.resolve_download_async(book_id)
    return book_content.to_response(result)


@router.get("/{book_id}/thumbnail")
async def get_book_thumbnail(
    book_id: int,
    if_none_match: Optional[str] = Header(None),
    service: ThumbnailService = Depends(ThumbnailService),
):
    result = await service.get_book_thumbnail_async(book_id)
    return thumbnail.to_response(result, if_none_match)


@router.patch("/{book_id}")
async def update_book_cover(
    book_id: int,
    schema: UpdateBookCover,
    service: AdminBookService = Depends(AdminBookService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_cover_async(book_id, schema)
