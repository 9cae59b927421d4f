"""
Image Transcoder

Decodes a candidate image, downsizes it to the maximum edge length and
re-encodes it as JPEG at the quality chosen by the compression policy.
"""

import base64
import logging
from io import BytesIO
from typing import Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from .config import settings
from .errors import DecodeError, SizeLimitError, UnsupportedInputError
from .estimator import estimate_payload_size, format_file_size, quality
from .models import (
    LosslessPolicy,
    ManualPolicy,
    PresetPolicy,
    SourceImage,
    TranscodeResult,
)

logger = logging.getLogger(__name__)

OUTPUT_MIME = "image/jpeg"

# Errors Pillow raises for bytes it cannot turn into pixels
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
)


def validate_candidate(mime: Optional[str], size: int, limit: Optional[int] = None) -> None:
    """
    Reject a candidate file before any decoding happens.

    Raises:
        UnsupportedInputError: If the declared type is missing or not image/*
        SizeLimitError: If ``size`` exceeds the limit (20 MiB by default)
    """
    if not mime or not mime.startswith("image/"):
        raise UnsupportedInputError(f"Please select an image file (got {mime or 'unknown type'})")

    limit = settings.max_upload_bytes if limit is None else limit
    if size > limit:
        raise SizeLimitError(size, limit)


def mime_disposition(mime: str) -> str:
    if mime in ("image/jpeg", "image/jpg"):
        return "jpeg"
    if mime == "image/png":
        return "png"
    return "other"


def load_source_image(data: bytes, mime: Optional[str], limit: Optional[int] = None) -> SourceImage:
    """
    Validate a candidate and read its natural dimensions.

    Raises:
        UnsupportedInputError, SizeLimitError: See validate_candidate
        DecodeError: If the bytes are not a recognizable image
    """
    validate_candidate(mime, len(data), limit)

    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
    except _DECODE_ERRORS as e:
        raise DecodeError(f"Failed to process image: {e}") from e

    return SourceImage(
        data=data,
        mime=mime,
        disposition=mime_disposition(mime),
        byte_length=len(data),
        width=width,
        height=height,
    )


def compute_target_size(width: int, height: int, max_dimension: Optional[int] = None) -> Tuple[int, int]:
    """
    Downscale-only target size.

    When either side exceeds ``max_dimension`` both sides are scaled by
    ``min(max/width, max/height)`` and floored; otherwise the natural size
    is kept. Integer arithmetic keeps the constraining side exactly at
    ``max_dimension``.
    """
    max_dimension = settings.max_dimension if max_dimension is None else max_dimension

    if width <= max_dimension and height <= max_dimension:
        return width, height

    if width >= height:
        return max_dimension, max(1, height * max_dimension // width)
    return max(1, width * max_dimension // height), max_dimension


def jpeg_quality(factor: float) -> int:
    """Pillow JPEG quality (1-100) for a factor in (0, 1]."""
    return max(1, min(100, round(factor * 100)))


def _flatten(img: Image.Image) -> Image.Image:
    """Composite transparency onto black, as a canvas JPEG export does."""
    if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, (0, 0, 0))
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def transcode(
    source: SourceImage,
    policy: Union[LosslessPolicy, PresetPolicy, ManualPolicy],
    max_dimension: Optional[int] = None,
) -> TranscodeResult:
    """
    Resize and re-encode a source image.

    Every output is JPEG, including PNG inputs and the lossless policy.

    Args:
        source: Validated candidate image
        policy: Compression policy selecting the quality factor
        max_dimension: Longest allowed edge (2048 by default)

    Returns:
        TranscodeResult with output bytes, before/after dimensions and the
        estimated payload size

    Raises:
        UnsupportedInputError: If the source type is not image/*
        DecodeError: If the bytes cannot be decoded
    """
    if not source.mime or not source.mime.startswith("image/"):
        raise UnsupportedInputError(f"Unsupported input type: {source.mime}")

    factor = quality(policy)

    try:
        with Image.open(BytesIO(source.data)) as img:
            img.load()
            width, height = img.size
            target = compute_target_size(width, height, max_dimension)

            canvas = _flatten(img)
            if target != (width, height):
                canvas = canvas.resize(target, Image.Resampling.LANCZOS)

            buffer = BytesIO()
            canvas.save(buffer, format="JPEG", quality=jpeg_quality(factor))
    except _DECODE_ERRORS as e:
        raise DecodeError(f"Failed to process image: {e}") from e

    data = buffer.getvalue()
    estimated = estimate_payload_size(len(base64.b64encode(data)))

    logger.info(
        f"Transcoded {source.disposition} {width}x{height} -> jpeg {target[0]}x{target[1]} "
        f"@ q{factor:.2f}: {format_file_size(source.byte_length)} -> {format_file_size(estimated)}"
    )

    return TranscodeResult(
        data=data,
        mime=OUTPUT_MIME,
        width=target[0],
        height=target[1],
        original_width=width,
        original_height=height,
        estimated_size=estimated,
        original_format=source.disposition,
        quality=factor,
        source=source,
    )
