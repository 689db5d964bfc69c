"""Runtime configuration for slide synchronization."""
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    """
    Limits and knobs shared by the validator, the engine and the hosts.

    Theme values (font sizes, colors, slide size) are not configured here;
    they come from the CSS theme named by ``theme``.
    """
    max_slides: int = 100
    max_blocks_per_slide: int = 50
    max_string_length: int = 100_000
    max_spans: int = 500
    max_bullet_items: int = 100
    max_nesting_depth: int = 64  # objects + arrays; one bullet level uses two
    truncation_marker: str = "... (truncated)"
    allowed_link_hosts: Tuple[str, ...] = ("figma.com",)
    hash_sample_size: int = 1000
    theme: str = "default"
    font_family: Optional[str] = None  # overrides --slide-font-family from the theme
    debug: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SyncConfig":
        """Build a config from a plain dict, e.g. one loaded from JSON."""
        known = {f.name for f in fields(cls)} - {"extra"}
        kwargs = {}
        extra = {}
        for key, value in values.items():
            if key in known:
                kwargs[key] = value
            else:
                extra[key] = value
        if extra:
            logger.warning(f"Ignoring unknown config keys: {sorted(extra)}")
        if "allowed_link_hosts" in kwargs:
            kwargs["allowed_link_hosts"] = tuple(kwargs["allowed_link_hosts"])
        return cls(extra=extra, **kwargs)

    def is_allowed_host(self, hostname: str) -> bool:
        """True for an allow-listed host or one of its subdomains."""
        normalized = hostname.lower()
        return any(
            normalized == allowed or normalized.endswith("." + allowed)
            for allowed in self.allowed_link_hosts
        )
