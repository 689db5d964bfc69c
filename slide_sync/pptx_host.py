"""
python-pptx implementation of :class:`~slide_sync.host.SceneHost`.

Nodes are slides. The index tag is written into the slide's ``p:cSld/@name``
attribute, which PowerPoint preserves, so a saved deck can be reopened by a
new process and its slides reattached by tag. Slides without a tag are left
alone and double as a template library: any shape on them can be addressed as
``<slide_id>:<shape_id>`` or by shape name for title prefixes, slide-number
templates and link cards.
"""
import asyncio
import copy
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import requests
from matplotlib import font_manager
from PIL import Image, UnidentifiedImageError
from pptx import Presentation
from pptx.enum.shapes import MSO_SHAPE_TYPE
from pptx.opc.constants import RELATIONSHIP_TYPE as RT
from pptx.oxml.ns import qn
from pptx.util import Inches

from .css_utils import CSSParser
from .errors import ResourceResolutionError, StaleReferenceError
from .host import HostNodeRef, SceneHost

logger = logging.getLogger(__name__)

TAG_PREFIX = "slidesync-index:"

# Image formats python-pptx can embed without conversion
PPTX_IMAGE_FORMATS = {"PNG", "JPEG", "GIF", "BMP", "TIFF", "WMF"}

_REGULAR_NAMES = {"regular", "normal", "book", "roman", "plain"}


@dataclass
class PptxImage:
    """An image validated by Pillow, ready for ``add_picture``."""
    data: bytes
    width: int
    height: int
    format: str

    def stream(self) -> io.BytesIO:
        return io.BytesIO(self.data)


def _normalize_style(style_name: str) -> str:
    normalized = " ".join(style_name.lower().replace("-", " ").split())
    return "regular" if normalized in _REGULAR_NAMES else normalized


class SystemFontRegistry:
    """Installed fonts as seen by matplotlib's font manager."""

    def __init__(self):
        self._index: Optional[Dict[str, Set[str]]] = None

    def _build(self) -> Dict[str, Set[str]]:
        index: Dict[str, Set[str]] = {}
        for entry in font_manager.fontManager.ttflist:
            try:
                style_name = font_manager.get_font(entry.fname).style_name
            except (OSError, RuntimeError) as exc:
                logger.debug(f"Skipping unreadable font {entry.fname}: {exc}")
                continue
            index.setdefault(entry.name.lower(), set()).add(_normalize_style(style_name))
        logger.debug(f"Indexed {len(index)} installed font families")
        return index

    def has(self, family: str, variant: str) -> bool:
        if self._index is None:
            self._index = self._build()
        return _normalize_style(variant) in self._index.get(family.lower(), set())


class PptxHost(SceneHost):
    """A .pptx deck opened (or created) with python-pptx."""

    def __init__(self, path=None, theme: str = "default", presentation=None,
                 font_registry=None, request_timeout: float = 10.0, debug: bool = False):
        self.path = Path(path) if path else None
        self.theme = theme
        self.debug = debug
        self.css_parser = CSSParser(theme)
        self.font_registry = font_registry or SystemFontRegistry()
        self.request_timeout = request_timeout
        self.notifications: List[Tuple[str, bool]] = []

        if presentation is not None:
            self.prs = presentation
        elif self.path is not None and self.path.exists():
            self.prs = Presentation(str(self.path))
            logger.info(f"Opened {self.path} ({len(self.prs.slides)} slides)")
        else:
            self.prs = Presentation()
            dims = self.css_parser.get_slide_dimensions()
            self.prs.slide_width = Inches(dims['width_inches'])
            self.prs.slide_height = Inches(dims['height_inches'])

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @staticmethod
    def read_tag(slide) -> Optional[str]:
        name = slide._element.cSld.get("name") or ""
        if not name.startswith(TAG_PREFIX):
            return None
        return name[len(TAG_PREFIX):]

    async def list_tagged(self):
        tagged = []
        for slide in self.prs.slides:
            tag = self.read_tag(slide)
            if tag is not None:
                tagged.append((tag, slide))
        return tagged

    async def tag(self, handle, value: str) -> None:
        handle._element.cSld.set("name", f"{TAG_PREFIX}{value}")

    def node_id(self, handle) -> str:
        return str(handle.slide_id)

    def _blank_layout(self):
        for layout in self.prs.slide_layouts:
            if layout.name == "Blank":
                return layout
        layouts = self.prs.slide_layouts
        return layouts[6] if len(layouts) > 6 else layouts[0]

    async def create_node(self):
        slide = self.prs.slides.add_slide(self._blank_layout())
        # Layouts other than Blank bring placeholders along
        await self.clear_node(slide)
        return slide

    async def clear_node(self, handle) -> None:
        """Remove shapes, background and transition, dropping relationships they used."""
        slide_element = handle._element
        sp_tree = handle.shapes._spTree
        rel_ids = set()
        for shape in list(handle.shapes):
            element = shape._element
            rel_ids.update(element.xpath('.//@r:embed | .//@r:id | .//@r:link'))
            sp_tree.remove(element)

        c_sld = slide_element.cSld
        for bg in c_sld.findall(qn('p:bg')):
            rel_ids.update(bg.xpath('.//@r:embed'))
            c_sld.remove(bg)
        for transition in slide_element.findall(qn('p:transition')):
            slide_element.remove(transition)

        for rel_id in rel_ids:
            handle.part.drop_rel(str(rel_id))

    async def destroy(self, handle) -> None:
        # Match by part: slide_id cannot be read once the slide is detached
        prs_part = self.prs.part
        sld_id_lst = self.prs.slides._sldIdLst
        for sld_id in list(sld_id_lst):
            if prs_part.related_part(sld_id.rId) is handle.part:
                sld_id_lst.remove(sld_id)
                prs_part.drop_rel(sld_id.rId)
                return
        raise StaleReferenceError(f"Slide {handle.part.partname} is no longer in the deck")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def load_font(self, family: str, variant: str) -> None:
        if not self.font_registry.has(family, variant):
            raise ResourceResolutionError((family, variant), f"font {family} {variant} is not installed")

    async def import_style(self, name: str):
        color = self.css_parser.get_named_fill(name)
        if color is None:
            raise ResourceResolutionError(name, f"no .{name} fill in theme '{self.theme}'")
        return color

    async def create_image(self, data: bytes) -> PptxImage:
        try:
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                fmt = img.format or ""
                if fmt not in PPTX_IMAGE_FORMATS:
                    # Formats such as WEBP are re-encoded so PowerPoint can show them
                    buffer = io.BytesIO()
                    img.convert("RGBA").save(buffer, format="PNG")
                    data, fmt = buffer.getvalue(), "PNG"
        except (UnidentifiedImageError, OSError) as exc:
            raise ResourceResolutionError("image", f"unreadable image data: {exc}") from exc
        return PptxImage(data=data, width=width, height=height, format=fmt)

    async def fetch_remote(self, url: str) -> bytes:
        response = await asyncio.to_thread(requests.get, url, timeout=self.request_timeout)
        response.raise_for_status()
        return response.content

    def _shape_kind(self, shape) -> str:
        try:
            shape_type = shape.shape_type
        except NotImplementedError:
            return "unknown"
        if shape_type == MSO_SHAPE_TYPE.GROUP:
            return "group"
        if shape_type in (MSO_SHAPE_TYPE.AUTO_SHAPE, MSO_SHAPE_TYPE.TEXT_BOX, MSO_SHAPE_TYPE.PICTURE,
                          MSO_SHAPE_TYPE.FREEFORM, MSO_SHAPE_TYPE.PLACEHOLDER):
            return "frame"
        return str(shape_type).lower()

    async def lookup_node(self, node_id: str) -> Optional[HostNodeRef]:
        for slide in self.prs.slides:
            if self.read_tag(slide) is not None:
                continue
            for shape in slide.shapes:
                if f"{slide.slide_id}:{shape.shape_id}" == node_id or shape.name == node_id:
                    return HostNodeRef(node_id=node_id, kind=self._shape_kind(shape), handle=(slide, shape))
        return None

    def clone_into(self, ref: HostNodeRef, target_slide):
        """
        Deep-copy a template shape onto *target_slide* and return the new shape.

        Raises:
            StaleReferenceError: when the template shape or its slide was
                deleted after the reference was cached.
        """
        source_slide, shape = ref.handle
        element = shape._element
        if element.getparent() is None or not any(s.part is source_slide.part for s in self.prs.slides):
            raise StaleReferenceError(f"Template node {ref.node_id} no longer exists")

        new_element = copy.deepcopy(element)
        if source_slide.part is not target_slide.part:
            for blip in new_element.xpath('.//a:blip[@r:embed]'):
                image_part = source_slide.part.related_part(blip.get(qn('r:embed')))
                blip.set(qn('r:embed'), target_slide.part.relate_to(image_part, RT.IMAGE))

        next_id = target_slide.shapes._next_shape_id
        for c_nv_pr in new_element.xpath('.//p:cNvPr'):
            c_nv_pr.set('id', str(next_id))
            next_id += 1

        target_slide.shapes._spTree.insert_element_before(new_element, 'p:extLst')
        for candidate in target_slide.shapes:
            if candidate._element is new_element:
                return candidate
        raise StaleReferenceError(f"Clone of {ref.node_id} could not be attached")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def notify(self, message: str, error: bool = False) -> None:
        self.notifications.append((message, error))
        if error:
            logger.warning(message)
        else:
            logger.info(message)

    def save(self, path=None) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("No output path given for the deck")
        target.parent.mkdir(parents=True, exist_ok=True)
        self.prs.save(str(target))
        logger.debug(f"Saved {target}")
        return target

    def reopen(self) -> None:
        """Replace the in-memory deck with the copy on disk."""
        if self.path is None or not self.path.exists():
            raise ValueError("No saved deck to reopen")
        self.prs = Presentation(str(self.path))
        logger.info(f"Reopened {self.path} ({len(self.prs.slides)} slides)")

    @property
    def slide_width_px(self) -> float:
        return self.prs.slide_width / 914400 * 96

    @property
    def slide_height_px(self) -> float:
        return self.prs.slide_height / 914400 * 96
