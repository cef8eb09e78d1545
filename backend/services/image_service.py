# backend/services/image_service.py
import io
from PIL import Image, UnidentifiedImageError

from errors import UnsupportedFormat

MAX_DIMENSIONS = (1200, 1600)
JPEG_QUALITY = 85
JPEG_MIME_TYPE = "image/jpeg"


def compress_image(data: bytes) -> bytes:
    """Re-encodes an uploaded photo as a JPEG that fits inside MAX_DIMENSIONS.

    Smaller images keep their size; larger ones are shrunk with the aspect ratio
    preserved. Raises UnsupportedFormat for anything Pillow cannot decode.
    """
    if not data:
        raise UnsupportedFormat("Uploaded file is empty")
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
        if image.mode != "RGB":
            image = image.convert("RGB")
        image.thumbnail(MAX_DIMENSIONS, Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        # Pillow reports corrupt chunks as SyntaxError or ValueError.
        raise UnsupportedFormat() from e

    output = io.BytesIO()
    image.save(output, format="JPEG", quality=JPEG_QUALITY, optimize=True)
    return output.getvalue()
