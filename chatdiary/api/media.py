"""
媒体接口
"""

from fastapi import APIRouter, Depends, File, UploadFile
from chatdiary.api.dependencies import ServiceContainer, get_services, ok

router = APIRouter(prefix="/api/media", tags=["media"])


@router.post("/compress")
async def compress_image(file: UploadFile = File(...),
                         services: ServiceContainer = Depends(get_services)):
    """
    压缩上传的图片

    Returns:
        {"url": data URL, "name": 原文件名}，可直接作为消息附件
    """
    data = await file.read()
    url = services.media.compress_image(data)
    return ok({"type": "image", "url": url, "name": file.filename})
