"""URL helpers for hyperlinks and node links."""
import re
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote, urlsplit

_HYPERLINK_RE = re.compile(r'^(https?://|mailto:|tel:)', re.IGNORECASE)
_HOST_RE = re.compile(r'^https?://([^/?#]+)', re.IGNORECASE)
_FILE_KEY_RE = re.compile(r'^/(?:file|design|slides|proto)/([^/]+)')


def is_valid_hyperlink(url: Optional[str]) -> bool:
    """Only http(s), mailto and tel targets become clickable."""
    return bool(url) and bool(_HYPERLINK_RE.match(url))


def extract_hostname(url: str) -> Optional[str]:
    """Return the lower-cased host of an http(s) URL, without port or credentials."""
    match = _HOST_RE.match(url.strip())
    if not match:
        return None
    host = match.group(1).rsplit("@", 1)[-1]
    return host.split(":", 1)[0].lower() or None


def parse_node_link(url: str) -> Dict[str, Optional[str]]:
    """
    Extract ``file_key`` and ``node_id`` from a design-tool link.

    ``node-id=12-34`` and ``node-id=12%3A34`` both normalize to ``12:34``.
    """
    parts = urlsplit(url)
    path_match = _FILE_KEY_RE.match(parts.path)
    node_ids = parse_qs(parts.query).get("node-id")
    node_id = unquote(node_ids[0]).replace("-", ":") if node_ids else None
    return {
        "file_key": path_match.group(1) if path_match else None,
        "node_id": node_id,
    }
