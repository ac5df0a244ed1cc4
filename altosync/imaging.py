# altosync/imaging.py
"""Thumbnail and medium derivatives for property images (Pillow).

Layout per property: ``<root>/<pid>/<file>`` for originals, with
``thumb/<file>`` and ``medium/<file>`` mirroring the same names. A
derivative is fresh when its mtime is not older than the original's.
"""
import os
import re
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import ImageSizes
from .errors import AssetError
from .utils import logger

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
DERIVATIVE_DIRS = ("thumb", "medium")
SAVE_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "gif": "GIF", "webp": "WEBP"}


def property_dir(root: str, pid) -> str:
    return os.path.join(root, str(pid))


def extension_of(filename: str) -> str:
    return os.path.splitext(filename)[1].lstrip(".").lower()


def is_image_file(filename: str) -> bool:
    return extension_of(filename) in IMAGE_EXTENSIONS


def natural_key(name: str):
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", name)]


def list_originals(folder: str):
    """Image files directly inside ``folder``, in natural filename order."""
    if not os.path.isdir(folder):
        return []
    names = [
        name for name in os.listdir(folder)
        if is_image_file(name) and os.path.isfile(os.path.join(folder, name))
    ]
    return sorted(names, key=natural_key)


def has_image_files(root: str, pid) -> bool:
    base = property_dir(root, pid)
    for folder in (base,) + tuple(os.path.join(base, d) for d in DERIVATIVE_DIRS):
        if list_originals(folder):
            return True
    return False


def is_fresh(src: str, dst: str) -> bool:
    if not os.path.exists(dst) or os.path.getsize(dst) == 0:
        return False
    return os.path.getmtime(dst) >= os.path.getmtime(src)


def make_cover(src: str, dst: str, width: int, height: int, quality: int = 90):
    """Scale ``src`` to cover ``width`` x ``height`` and centre-crop to exactly that box."""
    ext = extension_of(src)
    fmt = SAVE_FORMATS.get(ext, "JPEG")
    tmp = dst + ".part"
    try:
        with Image.open(src) as img:
            if fmt == "JPEG":
                img = ImageOps.exif_transpose(img)
                img = img.convert("RGB")
            elif img.mode not in ("RGB", "RGBA"):
                # palette and grey images are resampled in RGBA so transparency survives
                img = img.convert("RGBA")
            out = ImageOps.fit(img, (width, height), Image.LANCZOS, centering=(0.5, 0.5))
            os.makedirs(os.path.dirname(dst), exist_ok=True)
            save_kwargs = {}
            if fmt in ("JPEG", "WEBP"):
                save_kwargs["quality"] = quality
            if fmt in ("JPEG", "PNG"):
                save_kwargs["optimize"] = True
            out.save(tmp, format=fmt, **save_kwargs)
        os.replace(tmp, dst)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        if os.path.exists(tmp):
            os.remove(tmp)
        raise AssetError(f"could not resize {src}: {e}") from e
    src_mtime = os.path.getmtime(src)
    os.utime(dst, (src_mtime, src_mtime))


def ensure_derivatives(root: str, pid, filename: str, sizes: ImageSizes, dry_run: bool = False) -> int:
    """Create missing or stale thumb/medium files for one original.

    Returns how many derivatives were (or, with ``dry_run``, would be) written.
    """
    base = property_dir(root, pid)
    src = os.path.join(base, filename)
    if not os.path.isfile(src):
        raise AssetError(f"original missing: {src}")
    boxes = {
        "thumb": (sizes.thumb_width, sizes.thumb_height),
        "medium": (sizes.medium_width, sizes.medium_height),
    }
    written = 0
    for folder, (width, height) in boxes.items():
        dst = os.path.join(base, folder, filename)
        if is_fresh(src, dst):
            continue
        if dry_run:
            logger.info("[dry-run] would write %s (%sx%s)", dst, width, height)
        else:
            make_cover(src, dst, width, height, sizes.quality)
            logger.debug("Wrote %s (%sx%s)", dst, width, height)
        written += 1
    return written
