"""Image metadata extraction for uploaded photos."""
import io
import logging
from pathlib import Path
from typing import List, Optional

from PIL import Image

from ugc_validator.types import ImageCandidate

logger = logging.getLogger(__name__)

MIME_TYPE_MAP = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp'
}

PIL_FORMAT_MIME = {
    'JPEG': 'image/jpeg',
    'PNG': 'image/png',
    'GIF': 'image/gif',
    'WEBP': 'image/webp',
}


GENERIC_MIME_TYPE = 'application/octet-stream'


def guess_mime_type(filename: str, default: str = GENERIC_MIME_TYPE) -> str:
    """Determine MIME type from file extension."""
    return MIME_TYPE_MAP.get(Path(filename).suffix.lower(), default)


def build_candidate(filename: str, data: bytes, mime_type: Optional[str] = None) -> ImageCandidate:
    """
    Wrap uploaded bytes as an ImageCandidate.

    Dimensions come from Pillow. Undecodable bytes are not an error here: the
    candidate carries `decode_error` and the constraint check rejects it.
    """
    # Generic declared types carry no information, detect from content instead
    if mime_type == GENERIC_MIME_TYPE:
        mime_type = None

    candidate = ImageCandidate(
        filename=filename,
        byte_size=len(data),
        mime_type=mime_type or guess_mime_type(filename),
        raw_bytes=data,
    )

    try:
        with Image.open(io.BytesIO(data)) as img:
            candidate.width, candidate.height = img.size
            if not mime_type and img.format in PIL_FORMAT_MIME:
                candidate.mime_type = PIL_FORMAT_MIME[img.format]
            # verify() catches truncated files that still have a readable header
            img.verify()
    except Exception as e:
        logger.warning(f"Could not decode image {filename}: {e}")
        candidate.decode_error = str(e) or type(e).__name__

    return candidate


def oversized_candidate(filename: str, byte_size: int, mime_type: Optional[str] = None) -> ImageCandidate:
    """Placeholder for an upload that was not read past the size limit. Never decoded."""
    if mime_type == GENERIC_MIME_TYPE:
        mime_type = None
    return ImageCandidate(
        filename=filename,
        byte_size=byte_size,
        mime_type=mime_type or guess_mime_type(filename),
        raw_bytes=b"",
    )


def load_candidates_from_paths(image_paths: List[Path]) -> List[ImageCandidate]:
    """Read local image files into candidates (CLI use)."""
    candidates = []
    for img_path in image_paths:
        if not img_path.exists():
            logger.warning(f"Image file not found: {img_path}")
            continue
        candidates.append(build_candidate(img_path.name, img_path.read_bytes()))
    return candidates
