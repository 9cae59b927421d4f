"""
imageslot Tests - Image Transcoder
"""

from io import BytesIO

import pytest
from PIL import Image

from conftest import make_image, make_photo
from imageslot.errors import DecodeError, SizeLimitError, UnsupportedInputError
from imageslot.models import LosslessPolicy, ManualPolicy, PresetPolicy, SourceImage
from imageslot.transcoder import (
    compute_target_size,
    jpeg_quality,
    load_source_image,
    mime_disposition,
    transcode,
    validate_candidate,
)

LIMIT = 20 * 1024 * 1024


def _decode(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


class TestValidateCandidate:
    def test_exact_limit_accepted(self):
        validate_candidate("image/png", LIMIT, limit=LIMIT)

    def test_one_byte_over_limit_rejected(self):
        with pytest.raises(SizeLimitError) as exc:
            validate_candidate("image/png", LIMIT + 1, limit=LIMIT)
        assert exc.value.size == LIMIT + 1

    def test_default_limit_is_20_mib(self):
        validate_candidate("image/jpeg", LIMIT)
        with pytest.raises(SizeLimitError):
            validate_candidate("image/jpeg", LIMIT + 1)

    @pytest.mark.parametrize("mime", [None, "", "text/plain", "application/pdf"])
    def test_non_image_rejected(self, mime):
        with pytest.raises(UnsupportedInputError):
            validate_candidate(mime, 10)

    def test_type_checked_before_size(self):
        with pytest.raises(UnsupportedInputError):
            validate_candidate("text/plain", LIMIT + 1)


class TestDisposition:
    @pytest.mark.parametrize("mime,expected", [
        ("image/jpeg", "jpeg"),
        ("image/jpg", "jpeg"),
        ("image/png", "png"),
        ("image/webp", "other"),
        ("image/gif", "other"),
    ])
    def test_mime_disposition(self, mime, expected):
        assert mime_disposition(mime) == expected


class TestTargetSize:
    def test_landscape_downscaled(self):
        assert compute_target_size(4000, 3000, 2048) == (2048, 1536)

    def test_portrait_downscaled(self):
        assert compute_target_size(3000, 4000, 2048) == (1536, 2048)

    def test_square_lands_on_both_axes(self):
        assert compute_target_size(5000, 5000, 2048) == (2048, 2048)

    @pytest.mark.parametrize("size", [(2048, 2048), (1000, 500), (1, 1), (2048, 10)])
    def test_small_images_unchanged(self, size):
        assert compute_target_size(*size, 2048) == size

    def test_one_axis_over_limit(self):
        assert compute_target_size(2049, 100, 2048) == (2048, 99)

    def test_extreme_aspect_keeps_one_pixel(self):
        assert compute_target_size(100000, 1, 2048) == (2048, 1)

    @pytest.mark.parametrize("width,height", [
        (3000, 2001), (2049, 2049), (4096, 2160), (7680, 4320), (2500, 9999), (3001, 3000),
    ])
    def test_constraining_axis_exact_and_ratio_floored(self, width, height):
        tw, th = compute_target_size(width, height, 2048)
        assert tw <= 2048 and th <= 2048
        assert 2048 in (tw, th)
        if width >= height:
            assert th == height * 2048 // width
        else:
            assert tw == width * 2048 // height


class TestJpegQuality:
    def test_mapping(self):
        assert jpeg_quality(1.0) == 100
        assert jpeg_quality(0.7) == 70
        assert jpeg_quality(0.1) == 10


class TestLoadSourceImage:
    def test_reads_dimensions(self):
        data = make_image(320, 200, "PNG")
        source = load_source_image(data, "image/png")

        assert (source.width, source.height) == (320, 200)
        assert source.disposition == "png"
        assert source.byte_length == len(data)

    def test_garbage_bytes(self):
        with pytest.raises(DecodeError):
            load_source_image(b"definitely not an image", "image/png")

    def test_size_limit_applied(self):
        data = make_image(10, 10, "PNG")
        with pytest.raises(SizeLimitError):
            load_source_image(data, "image/png", limit=len(data) - 1)


class TestTranscode:
    def test_large_png_converted_and_resized(self):
        source = load_source_image(make_image(4000, 3000, "PNG"), "image/png")

        result = transcode(source, PresetPolicy(tier="medium"), max_dimension=2048)

        assert (result.width, result.height) == (2048, 1536)
        assert (result.original_width, result.original_height) == (4000, 3000)
        assert result.output_format == "jpeg"
        assert result.original_format == "png"
        assert result.mime == "image/jpeg"
        assert result.quality == 0.70

        img = _decode(result.data)
        assert img.format == "JPEG"
        assert img.size == (2048, 1536)

    def test_small_jpeg_keeps_dimensions(self):
        source = load_source_image(make_image(800, 600, "JPEG"), "image/jpeg")

        result = transcode(source, PresetPolicy(tier="high"))

        assert (result.width, result.height) == (800, 600)
        assert result.original_format == "jpeg"
        assert _decode(result.data).size == (800, 600)

    def test_lossless_policy_still_outputs_jpeg(self):
        source = load_source_image(make_image(64, 64, "PNG"), "image/png")

        result = transcode(source, LosslessPolicy())

        assert result.quality == 1.0
        assert _decode(result.data).format == "JPEG"

    def test_other_formats_converted(self):
        source = load_source_image(make_image(50, 40, "GIF", mode="P", color=3), "image/gif")

        result = transcode(source, PresetPolicy())

        assert result.original_format == "other"
        assert _decode(result.data).format == "JPEG"

    def test_transparency_flattened(self):
        source = load_source_image(make_image(32, 32, "PNG", mode="RGBA", color=(255, 255, 255, 0)), "image/png")

        result = transcode(source, LosslessPolicy())
        img = _decode(result.data)

        assert img.mode == "RGB"
        # fully transparent pixels become black, as with a canvas export
        assert max(img.getpixel((16, 16))) < 10

    def test_repeated_transcode_same_dimensions(self):
        source = load_source_image(make_photo(2600, 1300), "image/png")
        policy = ManualPolicy(factor=0.6)

        results = [transcode(source, policy) for _ in range(3)]

        assert {(r.width, r.height) for r in results} == {(2048, 1024)}

    def test_estimated_size_matches_output(self):
        source = load_source_image(make_photo(300, 200), "image/png")

        result = transcode(source, PresetPolicy(tier="low"))

        assert abs(result.estimated_size - len(result.data)) <= 2

    def test_lower_quality_not_larger(self):
        source = load_source_image(make_photo(640, 480), "image/png")

        low = transcode(source, PresetPolicy(tier="low")).estimated_size
        medium = transcode(source, PresetPolicy(tier="medium")).estimated_size
        high = transcode(source, PresetPolicy(tier="high")).estimated_size

        assert low <= medium <= high

    def test_manual_factor_monotonic(self):
        source = load_source_image(make_photo(640, 480), "image/png")

        sizes = [transcode(source, ManualPolicy(factor=f)).estimated_size for f in (0.2, 0.5, 0.8, 1.0)]

        assert sizes == sorted(sizes)

    def test_keeps_source_for_retranscode(self):
        source = load_source_image(make_image(100, 100, "PNG"), "image/png")

        result = transcode(source, PresetPolicy())

        assert result.source is source
        assert result.original_size == source.byte_length

    def test_corrupt_body(self):
        data = make_photo(200, 200)
        truncated = data[: len(data) // 2]
        source = SourceImage(
            data=truncated, mime="image/png", disposition="png",
            byte_length=len(truncated), width=200, height=200,
        )
        with pytest.raises(DecodeError):
            transcode(source, PresetPolicy())

    def test_non_image_source(self):
        source = SourceImage(
            data=b"hello", mime="text/plain", disposition="other",
            byte_length=5, width=1, height=1,
        )
        with pytest.raises(UnsupportedInputError):
            transcode(source, PresetPolicy())
