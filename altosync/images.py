# altosync/images.py
"""Image import for one destination property.

Chooses candidates from the detail XML, skips work the destination already
has (count-based smart-skip), downloads missing originals, writes photo rows
and keeps thumb/medium derivatives fresh. One image failing never stops
its siblings or the owning property.
"""
import os
import re
from dataclasses import asdict, dataclass, field
from typing import List, Optional
from urllib.parse import urlparse

import requests
from sqlalchemy.orm import Session

from . import crud
from .config import ImageSizes
from .errors import AssetError
from .imaging import IMAGE_EXTENSIONS, ensure_derivatives, extension_of, property_dir
from .utils import logger
from .xmlutil import attr_at, children, text_at

IMAGE_TYPE_CODES = ("", "0", "1", "image", "photo")
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
MAX_FILENAME = 240


@dataclass
class ImageCandidate:
    url: str
    name: str = ""
    caption: str = ""
    # set when a HEAD request was needed to accept the url
    content_type: Optional[str] = field(default=None, compare=False)


@dataclass
class ImageStats:
    candidates: int = 0
    downloaded: int = 0
    reused: int = 0
    failed: int = 0
    derivatives_written: int = 0
    skipped: int = 0

    def add(self, other: "ImageStats"):
        for key, value in asdict(other).items():
            setattr(self, key, getattr(self, key) + value)

    def as_dict(self):
        return asdict(self)


def url_extension(url: str) -> str:
    return extension_of(urlparse(url).path or url)


def sanitize_name(name: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_\-.]", "", name or "")
    return re.sub(r"\.[a-z0-9]{2,5}$", "", cleaned, flags=re.IGNORECASE)


def build_filename(pid, ordering: int, name: str, ext: str) -> str:
    """``<pid>_<ordering:03d>_<sanitized name>.<ext>``, capped at 240 characters."""
    base = f"{pid}_{ordering:03d}_{sanitize_name(name)}"
    limit = MAX_FILENAME - (len(ext) + 1)
    return f"{base[:limit]}.{ext}"


class ImagePipeline:
    def __init__(self, image_root: str, sizes: ImageSizes = None, session=None, timeout: int = 30):
        self.image_root = image_root
        self.sizes = sizes or ImageSizes()
        self.session = session or requests.Session()
        self.timeout = timeout

    def sniff_content_type(self, url: str) -> Optional[str]:
        """HEAD the url and return its image content type, or None."""
        try:
            resp = self.session.head(url, allow_redirects=True, timeout=8)
        except requests.RequestException as e:
            logger.debug("HEAD %s failed: %s", url, e)
            return None
        if resp.status_code >= 400:
            return None
        content_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        return content_type if content_type.startswith("image/") else None

    def classify(self, url: str, name: str = "", type_code: Optional[str] = None):
        """Return ``(is_image, sniffed_content_type)``; the type is None unless HEAD was used."""
        if (type_code or "").strip() not in IMAGE_TYPE_CODES:
            return False, None
        if url_extension(url) in IMAGE_EXTENSIONS or extension_of(name) in IMAGE_EXTENSIONS:
            return True, None
        content_type = self.sniff_content_type(url)
        if content_type:
            logger.debug("HEAD says %s is %s", url, content_type)
            return True, content_type
        return False, None

    def is_probable_image(self, url: str, name: str = "", type_code: Optional[str] = None) -> bool:
        return self.classify(url, name, type_code)[0]

    def collect_candidates(self, node) -> List[ImageCandidate]:
        """Images from ``files/file``; ``images/image`` only when that yields nothing."""
        found = []
        for f in children(node, "files/file"):
            url = text_at(f, "url")
            name = text_at(f, "name")
            if not url:
                continue
            ok, content_type = self.classify(url, name, f.get("type", ""))
            if ok:
                found.append(ImageCandidate(url=url, name=name, caption=text_at(f, "caption"),
                                            content_type=content_type))
        if found:
            return found
        for image in children(node, "images/image"):
            url = text_at(image, "large_url") or text_at(image, "url")
            if not url:
                continue
            name = text_at(image, "name") or os.path.basename(urlparse(url).path)
            ok, content_type = self.classify(url, name)
            if ok:
                found.append(ImageCandidate(url=url, name=name, caption=text_at(image, "caption"),
                                            content_type=content_type))
        if found:
            logger.info("Using legacy <images> list (%s candidates)", len(found))
        return found

    def resolve_extension(self, candidate: ImageCandidate) -> str:
        for ext in (extension_of(candidate.name), url_extension(candidate.url)):
            if ext == "jpe":
                return "jpg"
            if ext in IMAGE_EXTENSIONS:
                return ext
        content_type = candidate.content_type or self.sniff_content_type(candidate.url)
        return CONTENT_TYPE_EXTENSIONS.get(content_type or "", "jpg")

    def download(self, url: str, path: str) -> bool:
        """Fetch ``url`` into ``path``. Returns False when a non-empty file was already there."""
        if os.path.isfile(path) and os.path.getsize(path) > 0:
            return False
        os.makedirs(os.path.dirname(path), exist_ok=True)
        try:
            resp = self.session.get(url, timeout=self.timeout)
            if resp.status_code >= 400:
                raise AssetError(f"HTTP {resp.status_code} for {url}")
            with open(path, "wb") as fh:
                fh.write(resp.content)
            if os.path.getsize(path) == 0:
                raise AssetError(f"empty body for {url}")
        except (requests.RequestException, OSError, AssetError) as e:
            if os.path.exists(path):
                os.remove(path)
            if isinstance(e, AssetError):
                raise
            raise AssetError(f"download failed for {url}: {e}") from e
        return True

    def process(self, db: Session, pid: int, node) -> ImageStats:
        stats = ImageStats()
        candidates = self.collect_candidates(node)
        stats.candidates = len(candidates)
        if not candidates:
            logger.info("Property %s: no image candidates", pid)
            return stats

        existing = crud.count_photos(db, pid)
        if existing >= len(candidates):
            logger.info("Property %s: %s photos already stored for %s candidates; skipping",
                        pid, existing, len(candidates))
            stats.skipped = 1
            return stats

        folder = property_dir(self.image_root, pid)
        ordering = existing
        logger.info("Property %s: importing %s of %s images from position %s",
                    pid, len(candidates) - existing, len(candidates), existing)
        for candidate in candidates[existing:]:
            ext = self.resolve_extension(candidate)
            filename = build_filename(pid, ordering, candidate.name, ext)
            try:
                fetched = self.download(candidate.url, os.path.join(folder, filename))
            except AssetError as e:
                stats.failed += 1
                logger.error("Property %s: image %s failed: %s", pid, candidate.url, e)
                continue
            if fetched:
                stats.downloaded += 1
            else:
                stats.reused += 1
            crud.sync_photo(db, pid, filename, candidate.caption, ordering, is_default=(ordering == 0))
            ordering += 1
            try:
                stats.derivatives_written += ensure_derivatives(self.image_root, pid, filename, self.sizes)
            except AssetError as e:
                stats.failed += 1
                logger.error("Property %s: resize of %s failed: %s", pid, filename, e)
        return stats
