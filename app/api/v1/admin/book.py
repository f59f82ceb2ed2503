from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.schemas.admin.book import CreateBook, UpdateBook
from app.services.admin.book import AdminBookService

router = APIRouter(prefix="/admin/books", tags=["ADMIN BOOKS"])


@router.post("", status_code=201)
async def create_book(
    schema: CreateBook,
    service: AdminBookService = Depends(AdminBookService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.create_book_async(schema)


@router.put("/{book_id}")
async def update_book(
    book_id: int,
    schema: UpdateBook,
    service: AdminBookService = Depends(AdminBookService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.update_book_async(book_id, schema)


@router.delete("/{book_id}")
async def delete_book(
    book_id: int,
    service: AdminBookService = Depends(AdminBookService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.delete_book_async(book_id)
