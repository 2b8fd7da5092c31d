"""
媒体处理服务
上传的图片压缩为WebP并转成data URL，作为聊天消息的图片附件
"""

import base64
from io import BytesIO
from PIL import Image, UnidentifiedImageError
from chatdiary.utils.exceptions import ChatDiaryError
from chatdiary.utils.logger import logger

MAX_WIDTH = 1000
WEBP_QUALITY = 80


class MediaService:
    """媒体处理服务"""

    def __init__(self, max_width: int = MAX_WIDTH, quality: int = WEBP_QUALITY):
        self.max_width = max_width
        self.quality = quality

    def compress_image(self, image_data: bytes) -> str:
        """
        压缩图片：宽度超过上限时等比缩放，输出WebP

        Args:
            image_data: 原始图片数据

        Returns:
            data:image/webp;base64,... 格式的字符串
        """
        try:
            image = Image.open(BytesIO(image_data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            logger.error(f"无法识别的图片: {e}")
            raise ChatDiaryError("Invalid image file") from e

        if image.mode not in ("RGB", "RGBA"):
            image = image.convert("RGBA" if "A" in image.getbands() else "RGB")

        width, height = image.size
        if width > self.max_width:
            height = round(height * self.max_width / width)
            width = self.max_width
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        buffer = BytesIO()
        image.save(buffer, format="WEBP", quality=self.quality)
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        logger.info(f"图片压缩完成: {len(image_data)} -> {buffer.tell()} bytes, {width}x{height}")
        return f"data:image/webp;base64,{encoded}"
