import io
import struct
import zlib

from PIL import Image

from app.application.media.errors import ErrorKind
from app.application.media.image_class import ImageClass, profile_for
from app.application.media.validator import validate

from .conftest import make_image


def _pad(data: bytes, size: int) -> bytes:
    # PNG decoding stops at IEND, trailing bytes are ignored
    return data + b"\x00" * (size - len(data))


def test_rejects_tiny_buffer_as_malformed():
    result = validate(b"\x89PNG" + b"\x00" * 46, "a.png", ImageClass.PROFILE)
    assert not result.ok
    assert result.kinds == [ErrorKind.MALFORMED_INPUT]


def test_rejects_empty_buffer_as_malformed():
    result = validate(b"", "a.png", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.MALFORMED_INPUT]


def test_accepts_valid_jpeg():
    result = validate(make_image(64, 48), "photo.jpg", ImageClass.POSTER)
    assert result.ok
    assert result.sniffed_mime == "image/jpeg"
    assert (result.width, result.height) == (64, 48)
    assert result.error is None


def test_sniffs_png_despite_jpg_extension():
    result = validate(make_image(40, 40, fmt="PNG"), "holiday.jpg", ImageClass.POSTER)
    assert result.ok
    assert result.sniffed_mime == "image/png"


def test_accepts_webp():
    result = validate(make_image(40, 40, fmt="WEBP"), "x.webp", ImageClass.THUMBNAIL)
    assert result.ok
    assert result.sniffed_mime == "image/webp"


def test_rejects_gif_as_unsupported_format():
    result = validate(make_image(40, 40, fmt="GIF", mode="L"), "x.png", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.UNSUPPORTED_FORMAT]
    assert result.sniffed_mime == "image/gif"


def test_rejects_non_image_bytes_as_unsupported_format():
    result = validate(b"%PDF-1.7\n" + b"A" * 500, "poster.png", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.UNSUPPORTED_FORMAT]
    assert result.sniffed_mime is None


def test_truncated_jpeg_is_corrupt_not_unsupported():
    data = make_image(200, 200)
    result = validate(data[: len(data) // 2], "cut.jpg", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.CORRUPT_IMAGE]
    assert result.sniffed_mime == "image/jpeg"


def test_size_boundary_equal_passes_and_one_more_fails():
    ceiling = profile_for(ImageClass.THUMBNAIL).max_bytes
    base = make_image(50, 50, fmt="PNG")

    assert validate(_pad(base, ceiling), "a.png", ImageClass.THUMBNAIL).ok

    over = validate(_pad(base, ceiling + 1), "a.png", ImageClass.THUMBNAIL)
    assert over.kinds == [ErrorKind.SIZE_EXCEEDED]
    assert over.error.limit == ceiling
    assert over.error.actual == ceiling + 1


def test_size_exceeded_message_cites_limit_and_actual():
    base = make_image(50, 50, fmt="PNG")
    result = validate(_pad(base, 6 * 1024 * 1024), "big.png", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.SIZE_EXCEEDED]
    message = str(result.error)
    assert "5MB" in message
    assert "6MB" in message


def test_too_small_and_too_large_are_distinct():
    small = validate(make_image(5, 200, fmt="PNG"), "s.png", ImageClass.POSTER)
    assert small.kinds == [ErrorKind.DIMENSION_TOO_SMALL]
    assert small.error.limit == 10
    assert small.error.actual == 5

    # header-only canvas; never decoded because the edge is over the limit
    img = Image.new("L", (10001, 40), color=0)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    large = validate(buf.getvalue(), "l.png", ImageClass.POSTER)
    assert large.kinds == [ErrorKind.DIMENSION_TOO_LARGE]
    assert large.error.actual == 10001


def test_reports_size_and_dimension_problems_together():
    data = _pad(make_image(5, 300, fmt="PNG"), 2 * 1024 * 1024)
    result = validate(data, "bad.png", ImageClass.THUMBNAIL)
    assert set(result.kinds) == {ErrorKind.SIZE_EXCEEDED, ErrorKind.DIMENSION_TOO_SMALL}


def _png_declaring(width: int, height: int) -> bytes:
    data = bytearray(make_image(16, 16, fmt="PNG", noise=False))
    # IHDR data sits at bytes 16..29, its CRC covers type and data (12..29)
    data[16:24] = struct.pack(">II", width, height)
    data[29:33] = struct.pack(">I", zlib.crc32(bytes(data[12:29])) & 0xFFFFFFFF)
    return _pad(bytes(data), 200)


def test_header_beyond_pixel_ceiling_is_too_large_not_unsupported():
    result = validate(_png_declaring(14000, 14000), "huge.png", ImageClass.POSTER)
    assert result.kinds == [ErrorKind.DIMENSION_TOO_LARGE]
    assert result.sniffed_mime == "image/png"
    assert "10000px" in str(result.error)
