"""
Process-lifetime caches for host resources.

Every cache shares the same behaviour:

1.  Concurrent lookups of one key share a single in-flight task.
2.  Failures are memoized as :data:`NEGATIVE` and never retried until the
    cache is cleared.
3.  ``clear()`` is coarse: a stale handle cannot be detected per key without
    another failing round trip, so the whole cache is dropped.
4.  Each failing key produces at most one user-facing notification.
"""
import asyncio
import base64
import binascii
import logging
from typing import Any, Dict, Hashable, Iterable, Optional, Set, Tuple

from .errors import ResourceResolutionError
from .hashing import content_hash_sampled
from .host import NODE_KINDS, HostNodeRef, SceneHost

logger = logging.getLogger(__name__)


class _Negative:
    """Marker for a lookup that failed."""

    def __repr__(self):
        return "NEGATIVE"


NEGATIVE = _Negative()


class ResourceCache:
    """Shared shape of the font, style, image and node caches."""

    label = "Resource"

    def __init__(self, host: SceneHost, debug: bool = False):
        self.host = host
        self.debug = debug
        self._values: Dict[Hashable, Any] = {}
        self._pending: Dict[Hashable, asyncio.Future] = {}
        self._notified: Set[Hashable] = set()
        self.lookups = 0  # host round trips, for diagnostics and tests

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    async def _load(self, key):
        raise NotImplementedError

    def _describe(self, key) -> str:
        return str(key)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get(self, key) -> Optional[Any]:
        """Resolve *key*; ``None`` means the resource is unavailable."""
        if key in self._values:
            value = self._values[key]
            return None if value is NEGATIVE else value

        pending = self._pending.get(key)
        if pending is not None:
            return await pending

        task = asyncio.ensure_future(self._resolve(key))
        self._pending[key] = task
        try:
            return await task
        finally:
            if self._pending.get(key) is task:
                del self._pending[key]

    def peek(self, key) -> Any:
        """Cached value, :data:`NEGATIVE`, or ``None`` when never looked up."""
        return self._values.get(key)

    def is_negative(self, key) -> bool:
        return self._values.get(key) is NEGATIVE

    @property
    def failed_keys(self) -> Set[Hashable]:
        return {key for key, value in self._values.items() if value is NEGATIVE}

    def clear(self) -> None:
        """Drop every cached value and negative marker."""
        if self.debug:
            logger.debug(f"Clearing {self.label.lower()} cache ({len(self._values)} entries)")
        self._values.clear()

    def __len__(self):
        return len(self._values)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve(self, key):
        self.lookups += 1
        try:
            value = await self._load(key)
        except ResourceResolutionError as exc:
            logger.warning(f"{self.label} {self._describe(key)!r} unavailable: {exc}")
            value = None
        except Exception as exc:
            logger.warning(f"{self.label} lookup failed for {self._describe(key)!r}: {exc}")
            value = None

        if value is None:
            self._values[key] = NEGATIVE
            self.notify_failure(key)
            return None

        self._values[key] = value
        self._notified.discard(key)
        return value

    def notify_failure(self, key, message: Optional[str] = None) -> None:
        """Notify the user about *key* once, no matter how often it fails."""
        if key in self._notified:
            return
        self._notified.add(key)
        self.host.notify(message or self._failure_message(key), error=True)

    def _failure_message(self, key) -> str:
        return f"{self.label} not found: {self._describe(key)}"


class FontCache(ResourceCache):
    """Loads (family, variant) pairs and remembers which ones succeeded."""

    label = "Font"

    def __init__(self, host: SceneHost, debug: bool = False):
        super().__init__(host, debug=debug)
        self.available: Set[Tuple[str, str]] = set()

    def _describe(self, key) -> str:
        family, variant = key
        return f"{family} {variant}"

    async def _load(self, key):
        family, variant = key
        await self.host.load_font(family, variant)
        self.available.add(key)
        return True

    async def ensure(self, pairs: Iterable[Tuple[str, str]]) -> Set[Tuple[str, str]]:
        """Load all *pairs* concurrently; return the set of available pairs."""
        pairs = list(dict.fromkeys(pairs))
        await asyncio.gather(*(self.get(pair) for pair in pairs))
        return set(self.available)

    def clear(self) -> None:
        super().clear()
        self.available.clear()


class StyleCache(ResourceCache):
    """Named fill styles (template backgrounds)."""

    label = "Paint style"

    async def _load(self, key):
        return await self.host.import_style(key)

    def _failure_message(self, key) -> str:
        return f'Paint style "{key}" not found'


class ImageCache(ResourceCache):
    """
    Host image handles, uploaded once per process.

    Embedded images are keyed by a sampled hash of their base64 text, remote
    images by URL.
    """

    label = "Image"

    def __init__(self, host: SceneHost, sample_size: int = 1000, debug: bool = False):
        super().__init__(host, debug=debug)
        self.sample_size = sample_size
        self._sources: Dict[str, Tuple[str, str]] = {}

    def key_for(self, url: Optional[str] = None, data_base64: Optional[str] = None,
                source: Optional[str] = None) -> Optional[str]:
        if data_base64:
            key = f"base64:{content_hash_sampled(data_base64, self.sample_size)}"
            self._sources.setdefault(key, ("base64", data_base64))
            return key
        if url and (source == "remote" or url.startswith(("http://", "https://"))):
            key = f"url:{url}"
            self._sources.setdefault(key, ("url", url))
            return key
        return None

    async def _load(self, key):
        kind, payload = self._sources[key]
        if kind == "base64":
            try:
                data = base64.b64decode(payload, validate=False)
            except (binascii.Error, ValueError) as exc:
                raise ResourceResolutionError(key, f"invalid base64 data: {exc}") from exc
        else:
            data = await self.host.fetch_remote(payload)
        if not data:
            raise ResourceResolutionError(key, "empty image data")
        return await self.host.create_image(data)

    def _describe(self, key) -> str:
        kind, payload = self._sources.get(key, ("", key))
        return payload if kind == "url" else key

    def _failure_message(self, key) -> str:
        return f'Failed to load image "{self._describe(key)}"'


class NodeCache(ResourceCache):
    """Cloneable template nodes, filtered by kind."""

    label = "Node"

    def __init__(self, host: SceneHost, allowed_kinds: Iterable[str] = NODE_KINDS,
                 label: str = "Node", debug: bool = False):
        super().__init__(host, debug=debug)
        self.allowed_kinds = tuple(allowed_kinds)
        self.label = label

    async def _load(self, key) -> Optional[HostNodeRef]:
        ref = await self.host.lookup_node(key)
        if ref is None:
            raise ResourceResolutionError(key, "not found")

        if ref.kind == "component_set":
            if "component_set" not in self.allowed_kinds:
                raise ResourceResolutionError(key, "component sets are not supported here")
            variant = ref.default_variant
            if variant is None:
                variant = next((v for v in ref.variants if v.kind == "component"), None)
            if variant is None or variant.kind != "component":
                raise ResourceResolutionError(key, "component set has no usable variants")
            return variant

        if ref.kind not in self.allowed_kinds:
            raise ResourceResolutionError(key, f"node kind {ref.kind!r} is not supported")
        return ref
