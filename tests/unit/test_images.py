"""Unit tests for image payloads and data URLs."""

import base64

import pytest
from PIL import Image

from imgstudio.core.images import GeneratedImage, create_data_url, parse_data_url
from imgstudio.utils.exceptions import ImageProcessingError


@pytest.mark.unit
class TestDataUrl:
    def test_parse(self, png_bytes):
        b64 = base64.b64encode(png_bytes).decode("ascii")
        data, mime = parse_data_url(f"data:image/png;base64,{b64}")
        assert data == png_bytes
        assert mime == "image/png"

    def test_parse_rejects_non_data_url(self):
        with pytest.raises(ImageProcessingError):
            parse_data_url("https://example.com/x.png")

    def test_parse_rejects_missing_base64_marker(self):
        with pytest.raises(ImageProcessingError):
            parse_data_url("data:image/png,abcd")

    def test_parse_rejects_missing_mime(self):
        with pytest.raises(ImageProcessingError):
            parse_data_url("data:;base64,YWJj")

    def test_parse_rejects_invalid_base64(self):
        with pytest.raises(ImageProcessingError):
            parse_data_url("data:image/png;base64,@@@")

    def test_create_data_url(self):
        assert create_data_url(b"abc", "image/png") == "data:image/png;base64,YWJj"


@pytest.mark.unit
class TestGeneratedImage:
    def test_empty_data_rejected(self):
        with pytest.raises(ImageProcessingError):
            GeneratedImage(data=b"")

    def test_default_mime_is_jpeg(self):
        image = GeneratedImage(data=b"abc")
        assert image.mime_type == "image/jpeg"
        assert image.extension == "jpeg"

    def test_data_url_preserves_bytes_and_mime(self, png_bytes):
        image = GeneratedImage(data=png_bytes, mime_type="image/png")
        parsed = GeneratedImage.from_data_url(image.to_data_url())
        assert parsed == image

    @pytest.mark.parametrize(
        "mime,ext",
        [
            ("image/png", "png"),
            ("image/jpeg", "jpeg"),
            ("image/webp", "webp"),
            ("image/svg+xml", "svg"),
        ],
    )
    def test_extension(self, mime, ext):
        assert GeneratedImage(data=b"x", mime_type=mime).extension == ext

    def test_file_name_is_one_based(self):
        image = GeneratedImage(data=b"x", mime_type="image/png")
        assert image.file_name(0) == "generated-image-1.png"
        assert image.file_name(3) == "generated-image-4.png"

    def test_from_file_infers_mime(self, tmp_path, png_bytes):
        path = tmp_path / "photo.bin"
        path.write_bytes(png_bytes)
        image = GeneratedImage.from_file(path)
        assert image.mime_type == "image/png"
        assert image.data == png_bytes

    def test_from_file_unrecognized_raises(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"just some plain text here")
        with pytest.raises(ImageProcessingError):
            GeneratedImage.from_file(path)

    def test_to_pil_decodes(self, png_bytes):
        decoded = GeneratedImage(data=png_bytes, mime_type="image/png").to_pil()
        assert isinstance(decoded, Image.Image)
        assert decoded.size == (4, 4)

    def test_to_pil_invalid_raises(self):
        with pytest.raises(ImageProcessingError):
            GeneratedImage(data=b"not an image", mime_type="image/png").to_pil()

    def test_verify_accepts_valid_payload(self, png_bytes):
        GeneratedImage(data=png_bytes, mime_type="image/png").verify()

    def test_verify_rejects_undecodable_payload(self):
        with pytest.raises(ImageProcessingError, match="Failed to decode image"):
            GeneratedImage(data=b"\xff\xd8not-really-a-jpeg", mime_type="image/jpeg").verify()

    def test_repr_hides_bytes(self, png_bytes):
        assert "PNG" not in repr(GeneratedImage(data=png_bytes, mime_type="image/png"))
