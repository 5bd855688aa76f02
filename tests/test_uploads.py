import asyncio

import pytest

from errors import UploadTooLarge, ValidationError
from uploads import check_extension, inspect_image, read_upload, remove_poster_uploads, save_upload

from conftest import make_image


class FakeUpload:
    """Just enough of UploadFile for read_upload."""

    def __init__(self, data):
        self.data = data
        self.offset = 0

    async def read(self, size=-1):
        chunk = self.data[self.offset:self.offset + size]
        self.offset += len(chunk)
        return chunk


def test_inspect_png(png_bytes):
    info = inspect_image(png_bytes)
    assert info == {"format": "png", "resolution": "300dpi", "colorSpace": "RGB", "width": 8, "height": 8}


def test_inspect_cmyk_jpeg_with_dpi():
    info = inspect_image(make_image("CMYK", "JPEG", dpi=(72, 72)))
    assert info["format"] == "jpg"
    assert info["colorSpace"] == "CMYK"
    assert info["resolution"] == "72dpi"


def test_inspect_grayscale():
    assert inspect_image(make_image("L"))["colorSpace"] == "Grayscale"


def test_inspect_rejects_garbage():
    with pytest.raises(ValidationError) as info:
        inspect_image(b"\x00\x01 definitely not an image")
    assert info.value.fields == ["image"]


@pytest.mark.parametrize("name", ["poster.exe", "poster", "", "poster.svg"])
def test_bad_extensions(name):
    with pytest.raises(ValidationError):
        check_extension(name)


def test_extension_is_case_insensitive():
    assert check_extension("Poster.WEBP") == ".webp"


def test_save_without_poster_goes_to_temp(tmp_path, png_bytes):
    info = save_upload(tmp_path, None, "kolam.png", png_bytes)
    assert info["url"].startswith("/uploads/temp/poster-")
    assert info["size"] == len(png_bytes)
    stored = list((tmp_path / "temp").iterdir())
    assert len(stored) == 1
    assert stored[0].read_bytes() == png_bytes


def test_save_names_are_unique(tmp_path, png_bytes):
    first = save_upload(tmp_path, "abc", "same.png", png_bytes)
    second = save_upload(tmp_path, "abc", "same.png", png_bytes)
    assert first["url"] != second["url"]


def test_read_upload_within_limit():
    data = b"x" * 2500
    assert asyncio.run(read_upload(FakeUpload(data), 4096)) == data


def test_read_upload_too_large():
    with pytest.raises(UploadTooLarge) as info:
        asyncio.run(read_upload(FakeUpload(b"x" * (2 * 1024 * 1024 + 1)), 2 * 1024 * 1024))
    assert info.value.status_code == 413
    assert "2MB" in info.value.message


def test_remove_poster_uploads(tmp_path, png_bytes):
    save_upload(tmp_path, "abc", "a.png", png_bytes)
    assert remove_poster_uploads(tmp_path, "abc") is True
    assert not (tmp_path / "abc").exists()
    assert remove_poster_uploads(tmp_path, "abc") is False


def test_remove_refuses_paths_outside_upload_dir(tmp_path):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    (tmp_path / "keep").mkdir()
    assert remove_poster_uploads(uploads, "../keep") is False
    assert (tmp_path / "keep").is_dir()
