"""
Bounds and sanitizes an untrusted slide payload before it reaches the engine.

Structural problems reject the whole payload with :class:`ValidationError`.
Oversized content is trimmed instead, so a single huge paragraph never blocks
a sync.
"""
import logging
from typing import Any, Dict, List, Optional

from .config import SyncConfig
from .errors import ValidationError
from .links import extract_hostname, is_valid_hyperlink
from .models import ContentBlock, SlideDocument, block_from_dict

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "generate-slides"
LINK_KINDS = ("link", "figma")
# Encoded file contents; truncating them would corrupt the data
BINARY_KEYS = ("dataBase64",)


class PayloadSanitizer:
    """Recursive trimming of one payload; counters feed the summary log line."""

    def __init__(self, config: SyncConfig):
        self.config = config
        self.truncated_strings = 0
        self.truncated_lists = 0
        self.dropped_hrefs = 0
        self.dropped_blocks = 0

    # -- values -----------------------------------------------------------------

    def string(self, value: str) -> str:
        limit = self.config.max_string_length
        if len(value) <= limit:
            return value
        self.truncated_strings += 1
        return value[:limit] + self.config.truncation_marker

    def _cap(self, items: list, limit: int) -> list:
        if len(items) > limit:
            self.truncated_lists += 1
            return items[:limit]
        return items

    def value(self, value, key: Optional[str] = None, depth: int = 0):
        """
        Sanitize one JSON value.

        Raises:
            ValidationError: when objects and arrays nest deeper than
                ``max_nesting_depth``.
        """
        if isinstance(value, str):
            return value if key in BINARY_KEYS else self.string(value)
        if not isinstance(value, (dict, list)):
            return value

        depth += 1
        if depth > self.config.max_nesting_depth:
            raise ValidationError(f"Payload is nested too deeply (maximum depth {self.config.max_nesting_depth})")
        if isinstance(value, dict):
            return {k: self.value(v, k, depth) for k, v in value.items()}
        if key == "spans":
            return self.spans(value, depth)
        if key == "itemSpans" or key == "headers":
            return [self._cell(cell, depth) for cell in value]
        if key == "rows":
            return [
                [self._cell(cell, depth + 1) for cell in row] if isinstance(row, list) else self.value(row, depth=depth)
                for row in value
            ]
        if key in ("items", "children"):
            return [self.value(item, depth=depth) for item in self._cap(value, self.config.max_bullet_items)]
        return [self.value(item, depth=depth) for item in value]

    def _cell(self, cell, depth: int):
        return self.spans(cell, depth) if isinstance(cell, list) else self.value(cell, depth=depth)

    def spans(self, spans: list, depth: int = 0) -> list:
        result = []
        for span in self._cap(spans, self.config.max_spans):
            span = self.value(span, depth=depth)
            if isinstance(span, dict) and span.get("href") is not None and not is_valid_hyperlink(span.get("href")):
                logger.warning(f"Dropping unsupported link target {str(span['href'])[:80]!r}")
                self.dropped_hrefs += 1
                span = {k: v for k, v in span.items() if k != "href"}
            result.append(span)
        return result

    # -- blocks -------------------------------------------------------------------

    def block(self, slide_index: int, raw) -> Optional[ContentBlock]:
        if not isinstance(raw, dict):
            logger.warning(f"Slide {slide_index}: dropping malformed block of type {type(raw).__name__}")
            self.dropped_blocks += 1
            return None

        data = self.value(raw)
        kind = data.get("kind")
        if kind in LINK_KINDS and not self._link_allowed(data):
            logger.warning(f"Slide {slide_index}: dropping link card outside the allowed hosts")
            self.dropped_blocks += 1
            return None

        try:
            return block_from_dict(data)
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning(f"Slide {slide_index}: dropping malformed {kind or 'untyped'} block: {exc}")
            self.dropped_blocks += 1
            return None

    def _link_allowed(self, data: Dict[str, Any]) -> bool:
        link = data.get("link") if isinstance(data.get("link"), dict) else data
        url = link.get("url")
        if not isinstance(url, str):
            return False
        hostname = extract_hostname(url)
        return hostname is not None and self.config.is_allowed_host(hostname)

    def summary(self) -> str:
        return (f"{self.truncated_strings} strings truncated, {self.truncated_lists} lists capped, "
                f"{self.dropped_hrefs} links dropped, {self.dropped_blocks} blocks dropped")

    @property
    def changed(self) -> bool:
        return any((self.truncated_strings, self.truncated_lists, self.dropped_hrefs, self.dropped_blocks))


def validate_slides(raw, config: Optional[SyncConfig] = None) -> List[SlideDocument]:
    """
    Validate and sanitize a desired slide list.

    Raises:
        ValidationError: when the payload is not a list, is empty, has more
            than ``max_slides`` slides, contains a non-object slide, or a slide
            has more than ``max_blocks_per_slide`` blocks.
    """
    config = config or SyncConfig()

    if not isinstance(raw, list):
        raise ValidationError(f"Slides must be a list, got {type(raw).__name__}")
    if not raw:
        raise ValidationError("No slides to render")
    if len(raw) > config.max_slides:
        raise ValidationError(f"Too many slides: {len(raw)} (maximum {config.max_slides})")

    for index, slide in enumerate(raw):
        if not isinstance(slide, dict):
            raise ValidationError(f"Slide {index} must be an object, got {type(slide).__name__}")
        blocks = slide.get("blocks")
        if blocks is not None and not isinstance(blocks, list):
            raise ValidationError(f"Slide {index}: blocks must be a list")
        if blocks and len(blocks) > config.max_blocks_per_slide:
            raise ValidationError(
                f"Slide {index} has too many blocks: {len(blocks)} (maximum {config.max_blocks_per_slide})"
            )

    sanitizer = PayloadSanitizer(config)
    documents = []
    for index, slide in enumerate(raw):
        blocks = []
        for raw_block in slide.get("blocks") or []:
            block = sanitizer.block(index, raw_block)
            if block is not None:
                blocks.append(block)
        settings = sanitizer.value({k: v for k, v in slide.items() if k != "blocks"})
        try:
            documents.append(SlideDocument.from_dict(settings, blocks=blocks))
        except (TypeError, ValueError, AttributeError) as exc:
            raise ValidationError(f"Slide {index}: invalid slide settings: {exc}") from exc

    if sanitizer.changed:
        logger.info(f"Sanitized payload: {sanitizer.summary()}")
    return documents


def validate_payload(message, config: Optional[SyncConfig] = None) -> List[SlideDocument]:
    """Check the ``generate-slides`` envelope, then validate its slide list."""
    if not isinstance(message, dict):
        raise ValidationError("Message must be an object")
    if message.get("type") != MESSAGE_TYPE:
        raise ValidationError(f"Unknown message type: {message.get('type')!r}")
    return validate_slides(message.get("slides"), config)
