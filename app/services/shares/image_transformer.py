import asyncio
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

from loguru import logger
from PIL import Image, ImageOps, UnidentifiedImageError

from app.core.exceptions import ConversionFailedError
from app.core.settings import settings

THUMBNAIL_MIME = "image/png"
BACKGROUND = (255, 255, 255)


class ImageTransformer:
    """Contain-fit any raster image into a fixed-size opaque PNG."""

    def __init__(self, width: Optional[int] = None, height: Optional[int] = None):
        self.width = width or settings.THUMBNAIL_WIDTH
        self.height = height or settings.THUMBNAIL_HEIGHT

    def to_thumbnail(self, source: Union[bytes, str, Path]) -> bytes:
        try:
            opened = Image.open(BytesIO(source) if isinstance(source, bytes) else source)
            with opened as img:
                img = ImageOps.exif_transpose(img)
                img = self._flatten(img)
                # thumbnail() chỉ thu nhỏ, không phóng to
                img.thumbnail((self.width, self.height), Image.Resampling.LANCZOS)

                canvas = Image.new("RGB", (self.width, self.height), BACKGROUND)
                offset = ((self.width - img.width) // 2, (self.height - img.height) // 2)
                canvas.paste(img, offset)

                buf = BytesIO()
                canvas.save(buf, format="PNG", optimize=True)
                return buf.getvalue()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.error(f"❌ Image transform failed: {e}")
            raise ConversionFailedError(details=f"image transform failed: {e}") from e

    async def to_thumbnail_async(self, source: Union[bytes, str, Path]) -> bytes:
        return await asyncio.to_thread(self.to_thumbnail, source)

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            flat = Image.new("RGB", rgba.size, BACKGROUND)
            flat.paste(rgba, mask=rgba.getchannel("A"))
            return flat
        if img.mode != "RGB":
            return img.convert("RGB")
        return img
