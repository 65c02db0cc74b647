"""
Image Transformer

Decode, optionally resize, and re-encode an image to JPEG with Pillow.
Synchronous and CPU-bound; callers run it in a worker thread.
"""

import logging
import struct
from io import BytesIO
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .config import OUTPUT_FORMAT
from .errors import ProcessingFailure
from .models import TransformSpec

logger = logging.getLogger(__name__)

DECODER_ERRORS = (SyntaxError, EOFError, struct.error, IndexError, TypeError)


def target_size(original: Tuple[int, int], spec: TransformSpec) -> Tuple[int, int]:
    """
    Compute output dimensions.

    Both dimensions given: exact size. One given: the other follows the
    source aspect ratio. Neither: unchanged.
    """
    original_width, original_height = original
    width, height = spec.width, spec.height

    if width and height:
        return width, height
    if width:
        ratio = width / original_width
        return width, max(1, round(original_height * ratio))
    if height:
        ratio = height / original_height
        return max(1, round(original_width * ratio)), height
    return original_width, original_height


def _to_rgb(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white; JPEG has no alpha channel."""
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def transform_image(source: Path, spec: TransformSpec) -> bytes:
    """
    Render a source image according to ``spec``.

    Args:
        source: Path to the staged file
        spec: Normalized transform parameters

    Returns:
        JPEG-encoded bytes.

    Raises:
        ProcessingFailure: corrupt, truncated or unsupported input.
    """
    try:
        with Image.open(source) as img:
            img.load()
            original_size = img.size

            if spec.needs_resize:
                new_size = target_size(original_size, spec)
                if new_size != original_size:
                    img = img.resize(new_size, Image.Resampling.LANCZOS)
                    logger.debug(
                        f"[Transformer] Resized {original_size[0]}x{original_size[1]} "
                        f"-> {new_size[0]}x{new_size[1]}"
                    )

            output = BytesIO()
            _to_rgb(img).save(output, format=OUTPUT_FORMAT, quality=spec.quality)
            return output.getvalue()

    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise ProcessingFailure(f"Unsupported or unsafe image: {e}") from e
    except (OSError, ValueError) as e:
        # Truncated data, decoder errors, bad mode conversions
        raise ProcessingFailure(f"Failed to transform image: {e}") from e
    except DECODER_ERRORS as e:
        # Pillow plugins report malformed chunks and headers with these
        raise ProcessingFailure(f"Corrupt image data: {e}") from e
