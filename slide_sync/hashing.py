"""Content hashing used to decide whether a slide needs re-rendering.

The digests are a change-detection heuristic, not a security property.
"""
import hashlib
import json
from typing import Optional

from .models import SlideDocument

DIGEST_LENGTH = 16
DEFAULT_SAMPLE_SIZE = 1000


def content_hash(content: str) -> str:
    """Deterministic digest of *content* (first 16 hex chars of SHA-256)."""
    return hashlib.sha256(content.encode("utf-8", "surrogatepass")).hexdigest()[:DIGEST_LENGTH]


def content_hash_sampled(content: str, sample_size: int = DEFAULT_SAMPLE_SIZE) -> str:
    """
    Hash head + tail + length of large strings instead of the whole string.

    Below ``2 * sample_size`` characters this is exactly :func:`content_hash`.
    Two huge inputs sharing head, tail and length collide by construction.
    """
    threshold = sample_size * 2
    if len(content) > threshold:
        content = content[:sample_size] + content[-sample_size:] + str(len(content))
    return content_hash(content)


def canonical_json(value) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def slide_digest(document: SlideDocument, total: Optional[int] = None) -> str:
    """
    Digest of one slide's desired state.

    The deck total only matters for slides that display "n / total", so it is
    folded in for those slides alone.
    """
    payload = {"slide": document.to_dict()}
    if total is not None and document.shows_slide_number():
        payload["total"] = total
    return content_hash(canonical_json(payload))
