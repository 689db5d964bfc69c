"""
Interface between the reconciliation engine and a rendering host.

The engine only ever talks to a :class:`SceneHost`; concrete hosts (the
python-pptx deck in :mod:`slide_sync.pptx_host`, or an in-memory fake in
tests) implement it.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

#: Node kinds a template lookup may return.
NODE_KINDS = ("frame", "group", "component", "component_set", "instance")


@dataclass
class HostNodeRef:
    """A node found by id on the host, before any kind filtering."""
    node_id: str
    kind: str
    handle: Any
    default_variant: Optional["HostNodeRef"] = None
    variants: List["HostNodeRef"] = field(default_factory=list)


class SceneHost(ABC):
    """Identity adapter plus the fallible resolution primitives of a host."""

    # -- identity -----------------------------------------------------------

    @abstractmethod
    async def list_tagged(self) -> List[Tuple[str, Any]]:
        """Return ``(tag, handle)`` for every node carrying an index tag."""

    @abstractmethod
    async def tag(self, handle, value: str) -> None:
        """Write the opaque index tag onto *handle*."""

    @abstractmethod
    def node_id(self, handle) -> str:
        """Stable identifier of *handle*, unchanged across clears."""

    @abstractmethod
    async def create_node(self):
        """Create a new empty node (a slide) and return its handle."""

    @abstractmethod
    async def clear_node(self, handle) -> None:
        """Remove all content from *handle*, keeping the node itself."""

    @abstractmethod
    async def destroy(self, handle) -> None:
        """Delete *handle* from the scene graph."""

    # -- resources ------------------------------------------------------------

    @abstractmethod
    async def load_font(self, family: str, variant: str) -> None:
        """Make a font available, raising ResourceResolutionError when absent."""

    @abstractmethod
    async def import_style(self, name: str):
        """Resolve a named fill style; return None or raise when missing."""

    @abstractmethod
    async def create_image(self, data: bytes):
        """Upload image bytes and return a host-native image handle."""

    @abstractmethod
    async def fetch_remote(self, url: str) -> bytes:
        """Download a remote resource."""

    @abstractmethod
    async def lookup_node(self, node_id: str) -> Optional[HostNodeRef]:
        """Find any node by id (templates for prefixes, slide numbers, link cards)."""

    def notify(self, message: str, error: bool = False) -> None:
        """Show a user-facing message. Hosts without a UI may ignore it."""
