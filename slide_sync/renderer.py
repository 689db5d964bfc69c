"""
Interface of the per-block visual construction routines.

The engine hands each resolved block to a :class:`BlockRenderer`. Everything
the renderer needs from the process-wide caches is reachable through the
``context`` it was built with.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .css_utils import RGBA
from .models import ContentBlock, Footnote, GradientStop, SlideNumberSpec, TransitionSpec
from .styles import ResolvedSlideStyles, ResolvedTextStyle


@dataclass
class SlideCanvas:
    """Placement state for one slide while its blocks are rendered."""
    handle: Any
    index: int
    width: float
    height: float
    padding: float
    styles: ResolvedSlideStyles
    cursor_y: float = 0.0
    align: str = "left"
    valign: str = "top"
    nodes: List[Any] = field(default_factory=list)

    def __post_init__(self):
        if not self.cursor_y:
            self.cursor_y = self.padding

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.padding


@dataclass
class SolidFill:
    color: RGBA


@dataclass
class GradientFill:
    stops: Sequence[GradientStop]
    angle: float = 0


@dataclass
class ImageFill:
    image: Any


@dataclass
class StyleFill:
    style: Any
    name: str = ""


class BlockRenderer(ABC):
    """Turns resolved blocks into host-native nodes."""

    @abstractmethod
    def begin_slide(self, handle, index: int, styles: ResolvedSlideStyles,
                    align: str = "left", valign: str = "top") -> SlideCanvas:
        """Start rendering onto a cleared slide."""

    @abstractmethod
    async def render_block(self, block: ContentBlock, style: ResolvedSlideStyles,
                           canvas: SlideCanvas) -> Optional[Any]:
        """Render one block; ``None`` means the block kind is not recognized."""

    async def finish_slide(self, canvas: SlideCanvas) -> None:
        """Hook after the last block (vertical alignment, etc.)."""

    @abstractmethod
    async def apply_background(self, canvas: SlideCanvas, fill) -> None:
        """Apply a resolved fill (solid, gradient, image or named style)."""

    @abstractmethod
    async def render_footnotes(self, canvas: SlideCanvas, footnotes: List[Footnote],
                               style: ResolvedTextStyle) -> Optional[Any]:
        """Render footnotes at the bottom of the slide."""

    @abstractmethod
    async def render_slide_number(self, canvas: SlideCanvas, text: str, spec: SlideNumberSpec,
                                  template=None, current: int = 0, total: int = 0) -> Optional[Any]:
        """Render the slide number, from a cloned *template* node when given."""

    async def apply_transition(self, canvas: SlideCanvas, transition: TransitionSpec) -> None:
        """Apply a slide transition. Hosts without transitions ignore it."""

    @abstractmethod
    async def render_title(self, canvas: SlideCanvas, block, style: ResolvedTextStyle,
                           prefix_template, spacing: float) -> Optional[Any]:
        """Render a title heading preceded by a cloned prefix node."""
