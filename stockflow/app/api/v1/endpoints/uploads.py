from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from stockflow.app.api.deps import get_image_store
from stockflow.services.exceptions import InvalidArgument
from stockflow.services.images import ImageStore

router = APIRouter(prefix="/uploads")


class ImageDelete(BaseModel):
    path: str


@router.post("", status_code=201)
async def upload_image(file: UploadFile = File(...), images: ImageStore = Depends(get_image_store)):
    if file.size is not None and file.size > images.max_size:
        raise InvalidArgument(f"File too large (max {images.max_size // (1024 * 1024)}MB)")
    # au plus max_size + 1 octets en mémoire : save() refuse le dépassement
    content = await file.read(images.max_size + 1)
    path = images.save(file.filename, content)
    return {"success": True, "path": path}


@router.delete("")
def delete_image(payload: ImageDelete, images: ImageStore = Depends(get_image_store)):
    images.delete(payload.path)
    return {"success": True, "message": "File deleted"}
