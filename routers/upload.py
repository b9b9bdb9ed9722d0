import logging
import os
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from errors import NotFound, ValidationError
from repositories import Services
from security import get_services, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=["upload"])

MAX_FILES = 10


def _read_image(upload: UploadFile, services: Services) -> bytes:
    if not (upload.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    limit = services.settings.max_file_size
    content = upload.file.read(limit + 1)
    if len(content) > limit:
        raise ValidationError(f"File size too large. Maximum {limit // (1024 * 1024)}MB allowed.")
    return content


@router.post("/image")
def upload_image(
    image: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    if image is None:
        raise ValidationError("No image file provided")
    url = services.images.save_uploaded_file(image.filename, _read_image(image, services))
    return {"success": True, "data": {"imageUrl": url, "message": "Image uploaded successfully"}}


@router.post("/images")
def upload_images(
    images: Optional[List[UploadFile]] = File(None),
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    if not images:
        raise ValidationError("No image files provided")
    if len(images) > MAX_FILES:
        raise ValidationError(f"Too many files. Maximum {MAX_FILES} allowed.")
    # validate the whole batch before writing any of it
    contents = [(upload.filename, _read_image(upload, services)) for upload in images]
    urls = [services.images.save_uploaded_file(name, content) for name, content in contents]
    return {"success": True, "data": {"imageUrls": urls, "message": "Images uploaded successfully"}}


@router.delete("/image/{file_name}")
def delete_image(file_name: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    services.images.delete_image(file_name)
    return {"success": True, "data": {"message": "Image deleted successfully"}}


# ----------------------------------------------------------------------------
# Object storage
# ----------------------------------------------------------------------------

@router.post("/cloud")
def upload_to_storage(
    image: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
    _admin=Depends(require_admin),
):
    if image is None:
        raise ValidationError("No image file provided")
    content = _read_image(image, services)
    key = services.images.unique_name(os.path.splitext(image.filename or "")[1].lower())
    services.storage.upload(key, content, image.content_type)
    url = services.storage.make_public(key)
    return {"success": True, "data": {"key": key, "imageUrl": url, "message": "Image uploaded successfully"}}


@router.get("/cloud/{key}")
def serve_from_storage(key: str, services: Services = Depends(get_services)):
    metadata = services.storage.get_metadata(key)
    if not metadata["public"]:
        raise NotFound("File not found")
    return Response(content=services.storage.read(key), media_type=metadata["contentType"])


@router.get("/cloud/{key}/metadata")
def storage_metadata(key: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    return {"success": True, "data": services.storage.get_metadata(key)}


@router.delete("/cloud/{key}")
def delete_from_storage(key: str, services: Services = Depends(get_services), _admin=Depends(require_admin)):
    services.storage.delete(key)
    return {"success": True, "data": {"message": "File deleted successfully"}}
