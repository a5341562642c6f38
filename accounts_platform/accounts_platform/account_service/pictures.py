"""
Picture reference resolution.

A picture reference is either an http(s) URI, kept as is, or an
``upload:<key>`` token naming an object already placed in the picture store,
which resolves to its public URI.
"""
from typing import Optional

from .config import settings
from .validation import is_picture_file, is_picture_uri

UPLOAD_PREFIX = "upload:"


def resolve(ref: Optional[str]) -> Optional[str]:
    """Return the URI to store for ``ref``, or None for anything unusable."""
    if ref is None:
        return None
    if is_picture_uri(ref) is None:
        return ref
    if is_picture_file(ref) is None:
        key = ref[len(UPLOAD_PREFIX):]
        return settings.PICTURE_BASE_URL.rstrip("/") + "/" + key
    return None
