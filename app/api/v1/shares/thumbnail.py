from fastapi import APIRouter, Depends

from app.core.deps import AuthorizationService
from app.schemas.admin.book import GenerateThumbnail
from app.services.shares.storage import BlobStore, get_blob_store
from app.services.shares.thumbnail import ThumbnailService

router = APIRouter(tags=["THUMBNAILS"])


@router.get("/test-thumbnail")
async def test_thumbnail(store: BlobStore = Depends(get_blob_store)):
    return {
        "message": "Thumbnail endpoint is working",
        "uploadsDir": str(store.uploads_dir),
        "exists": store.uploads_dir.exists(),
        "s3Enabled": store.s3_enabled,
    }


@router.post("/generate-thumbnail")
async def generate_thumbnail(
    schema: GenerateThumbnail,
    service: ThumbnailService = Depends(ThumbnailService),
):
    return await service.generate_from_path_async(schema.filePath, schema.type)


@router.post("/admin/generate-thumbnail")
async def admin_generate_thumbnail(
    schema: GenerateThumbnail,
    service: ThumbnailService = Depends(ThumbnailService),
    authorization: AuthorizationService = Depends(AuthorizationService),
):
    await authorization.require_role(["admin"])
    return await service.generate_from_path_async(schema.filePath, schema.type)
