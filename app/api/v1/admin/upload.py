from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.services.admin.upload import UploadService

router = APIRouter(prefix="/admin/upload-file", tags=["UPLOADS"])


@router.post("")
async def upload_file(
    file: Optional[UploadFile] = File(None),
    userEmail: Optional[str] = Form(None),
    upload: UploadService = Depends(UploadService),
):
    return await upload.upload_file_async(file, userEmail)
