import logging
import shutil
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from errors import UploadTooLarge, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
TEMP_DIR_NAME = "temp"
CHUNK_SIZE = 1024 * 1024  # 1MB


def check_extension(filename: str) -> str:
    ext = Path(filename or "").suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError("Only image files are allowed (jpg, jpeg, png, gif, webp)", ["image"])
    return ext


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    raw = bytearray()
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        if len(raw) + len(chunk) > max_bytes:
            raise UploadTooLarge(f"File too large. Max {max_bytes // (1024 * 1024)}MB", ["image"])
        raw.extend(chunk)
    return bytes(raw)


def _color_space(mode: str) -> str:
    if mode == "CMYK":
        return "CMYK"
    if mode in ("1", "L", "LA", "I", "I;16", "F"):
        return "Grayscale"
    return "RGB"


def inspect_image(raw: bytes) -> Dict[str, Any]:
    try:
        with Image.open(BytesIO(raw)) as img:
            img.load()
            dpi = img.info.get("dpi")
            fmt = (img.format or "").lower()
            return {
                "format": "jpg" if fmt == "jpeg" else fmt,
                "resolution": f"{int(round(dpi[0]))}dpi" if dpi and dpi[0] else "300dpi",
                "colorSpace": _color_space(img.mode),
                "width": img.width,
                "height": img.height,
            }
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Invalid or unsupported image: {str(e)[:80]}", ["image"]) from e


def save_upload(upload_dir: Path, poster_id: Optional[str], filename: str, raw: bytes) -> Dict[str, Any]:
    """Store an image under upload_dir/<poster_id or temp>/ and return its file info."""
    ext = check_extension(filename)
    info = inspect_image(raw)

    folder = poster_id or TEMP_DIR_NAME
    dest_dir = upload_dir / folder
    dest_dir.mkdir(parents=True, exist_ok=True)
    safe_name = f"poster-{uuid4().hex}{ext}"
    (dest_dir / safe_name).write_bytes(raw)

    return {
        "url": f"/uploads/{folder}/{safe_name}",
        "format": info["format"],
        "resolution": info["resolution"],
        "size": len(raw),
        "colorSpace": info["colorSpace"],
    }


def remove_poster_uploads(upload_dir: Path, poster_id: str) -> bool:
    """Best-effort removal of a poster's upload directory."""
    target = (upload_dir / poster_id).resolve()
    if target.parent != upload_dir.resolve() or not target.is_dir():
        return False
    try:
        shutil.rmtree(target)
    except OSError:
        logger.warning("Failed to remove uploads for poster %s", poster_id, exc_info=True)
        return False
    return True
