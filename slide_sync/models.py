"""
Data models for slide synchronization.

Payload dictionaries use the authoring tool's camelCase keys; each model
reads them in ``from_dict`` the same way ``Block.from_element`` reads a
measured element.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from .links import parse_node_link


def _opt_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def spans_from_list(raw) -> List["TextSpan"]:
    """Build spans from a list of dicts, skipping entries that are not dicts."""
    if not isinstance(raw, list):
        return []
    return [TextSpan.from_dict(item) for item in raw if isinstance(item, dict)]


@dataclass
class TextSpan:
    """Inline text run with formatting marks."""
    text: str
    bold: bool = False
    italic: bool = False
    strike: bool = False
    code: bool = False
    href: Optional[str] = None
    superscript: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextSpan":
        return cls(
            text=str(data.get('text', '')),
            bold=bool(data.get('bold', False)),
            italic=bool(data.get('italic', False)),
            strike=bool(data.get('strike', False)),
            code=bool(data.get('code', False)),
            href=data.get('href') if isinstance(data.get('href'), str) else None,
            superscript=bool(data.get('superscript', False)),
        )


def spans_text(spans: List[TextSpan]) -> str:
    return ''.join(span.text for span in spans)


@dataclass
class BulletItem:
    """One bullet with an arbitrarily nested child list."""
    text: str
    spans: List[TextSpan] = field(default_factory=list)
    children: List["BulletItem"] = field(default_factory=list)
    children_ordered: bool = False
    children_start: int = 1

    @classmethod
    def from_value(cls, value) -> "BulletItem":
        """Accept either a bare string or an item dict."""
        if isinstance(value, str):
            return cls(text=value)
        if not isinstance(value, dict):
            raise TypeError(f"Bullet item must be a string or dict, got {type(value).__name__}")
        children = value.get('children') or []
        return cls(
            text=str(value.get('text', '')),
            spans=spans_from_list(value.get('spans')),
            children=[cls.from_value(child) for child in children],
            children_ordered=bool(value.get('childrenOrdered', False)),
            children_start=int(value.get('childrenStart', 1)),
        )


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------

@dataclass
class ParagraphBlock:
    text: str
    spans: List[TextSpan] = field(default_factory=list)
    kind: str = field(default="paragraph", init=False)

    @classmethod
    def from_dict(cls, data):
        return cls(text=str(data.get('text', '')), spans=spans_from_list(data.get('spans')))


@dataclass
class HeadingBlock:
    level: int
    text: str
    spans: List[TextSpan] = field(default_factory=list)
    kind: str = field(default="heading", init=False)

    @classmethod
    def from_dict(cls, data):
        level = int(data.get('level', 3))
        if level not in (1, 2, 3, 4):
            raise ValueError(f"Heading level must be 1-4, got {level}")
        return cls(level=level, text=str(data.get('text', '')), spans=spans_from_list(data.get('spans')))


@dataclass
class BulletsBlock:
    items: List[BulletItem]
    ordered: bool = False
    start: int = 1
    kind: str = field(default="bullets", init=False)

    @classmethod
    def from_dict(cls, data):
        items = [BulletItem.from_value(item) for item in data.get('items') or []]
        # Older payloads carry per-item spans in a parallel list
        item_spans = data.get('itemSpans')
        if isinstance(item_spans, list):
            for item, spans in zip(items, item_spans):
                if not item.spans:
                    item.spans = spans_from_list(spans)
        return cls(items=items, ordered=bool(data.get('ordered', False)), start=int(data.get('start', 1)))


@dataclass
class CodeBlock:
    code: str
    language: Optional[str] = None
    kind: str = field(default="code", init=False)

    @classmethod
    def from_dict(cls, data):
        language = data.get('language')
        return cls(code=str(data.get('code', '')), language=str(language) if language else None)


@dataclass
class ImageBlock:
    url: str
    alt: Optional[str] = None
    mime_type: Optional[str] = None
    data_base64: Optional[str] = None
    source: Optional[str] = None  # 'local' or 'remote'
    width: Optional[float] = None
    height: Optional[float] = None
    x: Optional[float] = None
    y: Optional[float] = None
    kind: str = field(default="image", init=False)

    @classmethod
    def from_dict(cls, data):
        size = data.get('size') or {}
        position = data.get('position') or {}
        return cls(
            url=str(data.get('url', '')),
            alt=data.get('alt'),
            mime_type=data.get('mimeType'),
            data_base64=data.get('dataBase64'),
            source=data.get('source'),
            width=_opt_float(size.get('width')),
            height=_opt_float(size.get('height')),
            x=_opt_float(position.get('x')),
            y=_opt_float(position.get('y')),
        )


@dataclass
class BlockquoteBlock:
    text: str
    spans: List[TextSpan] = field(default_factory=list)
    kind: str = field(default="blockquote", init=False)

    @classmethod
    def from_dict(cls, data):
        return cls(text=str(data.get('text', '')), spans=spans_from_list(data.get('spans')))


@dataclass
class TableBlock:
    headers: List[List[TextSpan]]
    rows: List[List[List[TextSpan]]]
    align: List[Optional[str]] = field(default_factory=list)
    kind: str = field(default="table", init=False)

    @classmethod
    def from_dict(cls, data):
        headers = [spans_from_list(cell) for cell in data.get('headers') or []]
        rows = [[spans_from_list(cell) for cell in row] for row in data.get('rows') or []]
        return cls(headers=headers, rows=rows, align=list(data.get('align') or []))


@dataclass
class LinkCardBlock:
    """Card that previews a node referenced by an external design-tool link."""
    url: str
    node_id: Optional[str] = None
    file_key: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    text_overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    hide_link: bool = False
    kind: str = field(default="link", init=False)

    @classmethod
    def from_dict(cls, data):
        link = data.get('link', data)
        url = str(link.get('url', ''))
        parsed = parse_node_link(url) if url else {}
        overrides = {}
        for name, value in (link.get('textOverrides') or {}).items():
            if isinstance(value, str):
                overrides[str(name)] = {'text': value, 'spans': []}
            elif isinstance(value, dict):
                overrides[str(name)] = {
                    'text': str(value.get('text', '')),
                    'spans': spans_from_list(value.get('spans')),
                }
        return cls(
            url=url,
            node_id=link.get('nodeId') or parsed.get('node_id'),
            file_key=link.get('fileKey') or parsed.get('file_key'),
            x=_opt_float(link.get('x')),
            y=_opt_float(link.get('y')),
            text_overrides=overrides,
            hide_link=bool(link.get('hideLink', False)),
        )


@dataclass
class UnknownBlock:
    """A block kind this version does not know; kept so the renderer can skip it."""
    kind: str
    data: Dict[str, Any] = field(default_factory=dict)


ContentBlock = Union[
    ParagraphBlock, HeadingBlock, BulletsBlock, CodeBlock, ImageBlock,
    BlockquoteBlock, TableBlock, LinkCardBlock, UnknownBlock,
]

BLOCK_TYPES = {
    'paragraph': ParagraphBlock,
    'heading': HeadingBlock,
    'bullets': BulletsBlock,
    'code': CodeBlock,
    'image': ImageBlock,
    'blockquote': BlockquoteBlock,
    'table': TableBlock,
    'link': LinkCardBlock,
    'figma': LinkCardBlock,
}


def block_from_dict(data: Dict[str, Any]) -> ContentBlock:
    """Dispatch on ``kind``; unknown kinds become :class:`UnknownBlock`."""
    kind = data.get('kind')
    if not isinstance(kind, str) or not kind:
        raise ValueError("Block is missing 'kind'")
    block_cls = BLOCK_TYPES.get(kind)
    if block_cls is None:
        return UnknownBlock(kind=kind, data={k: v for k, v in data.items() if k != 'kind'})
    return block_cls.from_dict(data)


# ---------------------------------------------------------------------------
# Per-slide settings
# ---------------------------------------------------------------------------

@dataclass
class TextStyle:
    size: Optional[float] = None
    color: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    spacing: Optional[float] = None

    @classmethod
    def from_dict(cls, data) -> Optional["TextStyle"]:
        if not isinstance(data, dict):
            return None
        return cls(
            size=_opt_float(data.get('size')),
            color=data.get('color') if isinstance(data.get('color'), str) else None,
            x=_opt_float(data.get('x')),
            y=_opt_float(data.get('y')),
            spacing=_opt_float(data.get('spacing')),
        )


@dataclass
class FontVariant:
    family: str
    style: Optional[str] = None
    bold: Optional[str] = None
    italic: Optional[str] = None
    bold_italic: Optional[str] = None

    @classmethod
    def from_dict(cls, data) -> Optional["FontVariant"]:
        if not isinstance(data, dict) or not data.get('family'):
            return None
        return cls(
            family=str(data['family']),
            style=data.get('style'),
            bold=data.get('bold'),
            italic=data.get('italic'),
            bold_italic=data.get('boldItalic'),
        )


@dataclass
class SlideStyles:
    """Sparse per-class overrides; anything left as None uses the theme default."""
    headings: Dict[str, TextStyle] = field(default_factory=dict)
    paragraphs: Optional[TextStyle] = None
    bullets: Optional[TextStyle] = None
    code: Optional[TextStyle] = None
    fonts: Dict[str, FontVariant] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> Optional["SlideStyles"]:
        if not isinstance(data, dict):
            return None
        headings = {}
        for name, value in (data.get('headings') or {}).items():
            style = TextStyle.from_dict(value)
            if style is not None:
                headings[name] = style
        fonts = {}
        for name, value in (data.get('fonts') or {}).items():
            variant = FontVariant.from_dict(value)
            if variant is not None:
                fonts[name] = variant
        return cls(
            headings=headings,
            paragraphs=TextStyle.from_dict(data.get('paragraphs')),
            bullets=TextStyle.from_dict(data.get('bullets')),
            code=TextStyle.from_dict(data.get('code')),
            fonts=fonts,
        )


@dataclass
class GradientStop:
    color: str
    position: float


@dataclass
class BackgroundImage:
    url: str
    mime_type: Optional[str] = None
    data_base64: Optional[str] = None
    source: Optional[str] = None


@dataclass
class SlideBackground:
    solid: Optional[str] = None
    gradient_stops: List[GradientStop] = field(default_factory=list)
    gradient_angle: float = 0
    template_style: Optional[str] = None
    image: Optional[BackgroundImage] = None

    @classmethod
    def from_dict(cls, data) -> Optional["SlideBackground"]:
        if not isinstance(data, dict):
            return None
        gradient = data.get('gradient') or {}
        stops = [
            GradientStop(color=str(stop.get('color', '')), position=float(stop.get('position', 0)))
            for stop in gradient.get('stops') or []
            if isinstance(stop, dict)
        ]
        image = data.get('image')
        return cls(
            solid=data.get('solid'),
            gradient_stops=stops,
            gradient_angle=float(gradient.get('angle', 0) or 0),
            template_style=data.get('templateStyle'),
            image=BackgroundImage(
                url=str(image.get('url', '')),
                mime_type=image.get('mimeType'),
                data_base64=image.get('dataBase64'),
                source=image.get('source'),
            ) if isinstance(image, dict) else None,
        )


@dataclass
class SlideNumberSpec:
    show: bool = True
    size: Optional[float] = None
    color: Optional[str] = None
    position: str = "bottom-right"
    padding_x: Optional[float] = None
    padding_y: Optional[float] = None
    format: Optional[str] = None
    node_id: Optional[str] = None
    start_from: Optional[int] = None
    offset: Optional[int] = None

    @classmethod
    def from_dict(cls, data) -> Optional["SlideNumberSpec"]:
        if not isinstance(data, dict):
            return None
        node_id = data.get('nodeId')
        if not node_id and data.get('link'):
            node_id = parse_node_link(str(data['link'])).get('node_id')
        return cls(
            show=data.get('show', True) is not False,
            size=_opt_float(data.get('size')),
            color=data.get('color'),
            position=data.get('position') or "bottom-right",
            padding_x=_opt_float(data.get('paddingX')),
            padding_y=_opt_float(data.get('paddingY')),
            format=data.get('format'),
            node_id=node_id,
            start_from=int(data['startFrom']) if data.get('startFrom') is not None else None,
            offset=int(data['offset']) if data.get('offset') is not None else None,
        )


@dataclass
class TransitionSpec:
    style: Optional[str] = None
    duration: Optional[float] = None
    curve: Optional[str] = None
    timing: str = "on-click"
    delay: Optional[float] = None

    @classmethod
    def from_dict(cls, data) -> Optional["TransitionSpec"]:
        if isinstance(data, str):
            return cls(style=data)
        if not isinstance(data, dict):
            return None
        timing = data.get('timing')
        timing_type, delay = "on-click", None
        if isinstance(timing, str):
            timing_type = timing
        elif isinstance(timing, dict):
            timing_type = timing.get('type') or "on-click"
            delay = _opt_float(timing.get('delay'))
        return cls(
            style=data.get('style'),
            duration=_opt_float(data.get('duration')),
            curve=data.get('curve'),
            timing=timing_type,
            delay=delay,
        )


@dataclass
class TitlePrefixSpec:
    node_id: Optional[str] = None
    spacing: float = 16

    @classmethod
    def from_dict(cls, data) -> Optional["TitlePrefixSpec"]:
        if not isinstance(data, dict):
            return None
        node_id = data.get('nodeId')
        if not node_id and data.get('link'):
            node_id = parse_node_link(str(data['link'])).get('node_id')
        spacing = data.get('spacing')
        return cls(node_id=node_id, spacing=float(spacing) if spacing is not None else 16)


@dataclass
class Footnote:
    id: str
    content: str
    spans: List[TextSpan] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data) -> "Footnote":
        return cls(
            id=str(data.get('id', '')),
            content=str(data.get('content', '')),
            spans=spans_from_list(data.get('spans')),
        )


@dataclass
class SlideDocument:
    """Desired content of one slide. Identity is its position in the desired list."""
    blocks: List[ContentBlock] = field(default_factory=list)
    background: Optional[SlideBackground] = None
    styles: Optional[SlideStyles] = None
    slide_number: Optional[SlideNumberSpec] = None
    transition: Optional[TransitionSpec] = None
    title_prefix: Optional[TitlePrefixSpec] = None
    footnotes: List[Footnote] = field(default_factory=list)
    align: str = "left"
    valign: str = "top"
    cover: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any], blocks: Optional[List[ContentBlock]] = None) -> "SlideDocument":
        """
        Create a SlideDocument from a (sanitized) payload dict.

        ``blocks`` may be passed in already parsed; otherwise every entry of
        ``data['blocks']`` must parse.
        """
        if blocks is None:
            blocks = [block_from_dict(block) for block in data.get('blocks') or []]
        return cls(
            blocks=blocks,
            background=SlideBackground.from_dict(data.get('background')),
            styles=SlideStyles.from_dict(data.get('styles')),
            slide_number=SlideNumberSpec.from_dict(data.get('slideNumber')),
            transition=TransitionSpec.from_dict(data.get('transition')),
            title_prefix=TitlePrefixSpec.from_dict(data.get('titlePrefix')),
            footnotes=[Footnote.from_dict(item) for item in data.get('footnotes') or [] if isinstance(item, dict)],
            align=data.get('align') or "left",
            valign=data.get('valign') or "top",
            cover=bool(data.get('cover', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def shows_slide_number(self) -> bool:
        return self.slide_number is not None and self.slide_number.show


@dataclass
class RenderedSlideRecord:
    """What the engine last rendered at one index."""
    content_hash: str
    node_id: str
