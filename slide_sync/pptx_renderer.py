"""
PowerPoint renderer for synchronized slides.

Blocks are stacked top to bottom inside the slide padding. Each block becomes
one shape (a text box, a table, a picture or a cloned template); positions
given in the payload override the stacking for that block.
"""
import logging
import math
import re
from typing import Iterator, List, Optional, Tuple

from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_AUTO_SIZE, PP_ALIGN
from pptx.oxml import parse_xml
from pptx.oxml.ns import nsdecls, qn
from pptx.util import Inches, Pt

from .css_utils import CSSParser, RGBA, parse_color
from .errors import StaleReferenceError
from .links import is_valid_hyperlink
from .models import (
    BlockquoteBlock, BulletItem, BulletsBlock, CodeBlock, Footnote, HeadingBlock, ImageBlock,
    LinkCardBlock, ParagraphBlock, SlideNumberSpec, TableBlock, TextSpan, TransitionSpec, spans_text,
)
from .renderer import BlockRenderer, GradientFill, ImageFill, SlideCanvas, SolidFill, StyleFill
from .styles import ResolvedSlideStyles, ResolvedTextStyle

logger = logging.getLogger(__name__)

BULLET_MARKERS = ("•", "◦", "▪", "–")
EMU_PER_PX = 914400 / 96

ALIGNMENTS = {"left": PP_ALIGN.LEFT, "center": PP_ALIGN.CENTER, "right": PP_ALIGN.RIGHT}

# Direction a slide enters from -> OOXML direction of travel
_DIR_FROM = {"left": "r", "right": "l", "top": "d", "bottom": "u"}
_DIR_TO = {"left": "l", "right": "r", "top": "u", "bottom": "d"}

QUOTE_BAR_WIDTH = 6
CODE_PADDING = 16


# Helper function to convert pixels to inches
def px(pixels):
    return Inches(pixels / 96)


def to_px(emu) -> float:
    return emu / EMU_PER_PX


def rgb(color: RGBA) -> RGBColor:
    return RGBColor(*color.rgb)


def transition_element(transition: TransitionSpec) -> Optional[Tuple[str, Optional[str]]]:
    """Map a transition style to ``(element, direction)``; None for no transition."""
    style = (transition.style or "none").replace("_", "-").lower()
    if style == "none":
        return None
    if style == "dissolve":
        return "dissolve", None
    if style == "smart-animate":
        return "fade", None
    match = re.fullmatch(r'(slide|move|push)-from-(left|right|top|bottom)', style)
    if match:
        kind, side = match.groups()
        return ("push" if kind == "push" else "cover"), _DIR_FROM[side]
    match = re.fullmatch(r'(slide|move)-out-to-(left|right|top|bottom)', style)
    if match:
        return "pull", _DIR_TO[match.group(2)]
    return None


def transition_speed(duration: Optional[float]) -> str:
    if duration is None:
        return "med"
    if duration <= 0.5:
        return "fast"
    if duration <= 1.0:
        return "med"
    return "slow"


class PptxBlockRenderer(BlockRenderer):
    """
    Renderer for turning resolved blocks into python-pptx shapes.

    Theme values (padding, spacing, line height, colors) are read from the
    same CSS theme as the style resolver.
    """

    def __init__(self, context):
        self.context = context
        self.host = context.host
        self.debug = context.config.debug
        self.css_parser = CSSParser(context.config.theme)
        css = self.css_parser

        self.padding = css.get_px_value('slide-padding')
        self.block_spacing = css.get_px_value('block-spacing')
        self.bullet_spacing = css.get_px_value('bullet-item-spacing')
        self.line_height = css.get_line_height()
        self.code_family = css.get_font_family('code-font-family')
        self.colors = css.get_colors()
        self.slide_number_size = css.get_px_value('slide-number-size')
        self.slide_number_padding = (css.get_px_value('slide-number-padding-x'),
                                     css.get_px_value('slide-number-padding-y'))
        delta_match = re.search(r'(-?\d+)pt', css.get_raw_value('table-font-delta'))
        self.table_font_delta = int(delta_match.group(1)) if delta_match else 0

        self._handlers = {
            'paragraph': self._render_paragraph,
            'heading': self._render_heading,
            'bullets': self._render_bullets,
            'code': self._render_code,
            'image': self._render_image,
            'blockquote': self._render_blockquote,
            'table': self._render_table,
            'link': self._render_link,
        }

    def _color(self, name: str) -> Optional[RGBA]:
        return parse_color(self.colors.get(name))

    # ------------------------------------------------------------------
    # Slide lifecycle
    # ------------------------------------------------------------------

    def begin_slide(self, handle, index: int, styles: ResolvedSlideStyles,
                    align: str = "left", valign: str = "top") -> SlideCanvas:
        return SlideCanvas(
            handle=handle, index=index,
            width=self.host.slide_width_px, height=self.host.slide_height_px,
            padding=self.padding, styles=styles, align=align, valign=valign,
        )

    async def render_block(self, block, style: ResolvedSlideStyles, canvas: SlideCanvas):
        handler = self._handlers.get(block.kind)
        if handler is None:
            return None
        return await handler(block, style, canvas)

    async def finish_slide(self, canvas: SlideCanvas) -> None:
        """Shift the stacked blocks down for middle/bottom vertical alignment."""
        if canvas.valign not in ("middle", "bottom") or not canvas.nodes:
            return
        used = canvas.cursor_y - self.block_spacing - canvas.padding
        free = canvas.height - 2 * canvas.padding - used
        shift = free / 2 if canvas.valign == "middle" else free
        if shift <= 0:
            return
        for shape in canvas.nodes:
            shape.top = shape.top + px(shift)

    # ------------------------------------------------------------------
    # Layout helpers
    # ------------------------------------------------------------------

    def _position(self, canvas: SlideCanvas, style: Optional[ResolvedTextStyle] = None,
                  x: Optional[float] = None, y: Optional[float] = None):
        if x is None and style is not None:
            x = style.x
        if y is None and style is not None:
            y = style.y
        left = x if x is not None else canvas.padding
        top = y if y is not None else canvas.cursor_y
        return left, top, y is None

    def _track(self, canvas: SlideCanvas, shapes, top: float, height: float, flows: bool,
               spacing: Optional[float] = None) -> None:
        if not flows:
            return
        canvas.nodes.extend(shapes)
        canvas.cursor_y = top + height + (spacing if spacing is not None else self.block_spacing)

    def _text_height(self, text: str, font_size: float, width_px: float) -> float:
        """Rough wrapped height; PowerPoint resizes the box to fit on open."""
        chars_per_line = max(1, int(width_px / (font_size * 0.5)))
        lines = sum(max(1, math.ceil(len(line) / chars_per_line)) for line in text.split('\n'))
        return lines * font_size * self.line_height

    def _add_textbox(self, slide, left, top, width, height):
        textbox = slide.shapes.add_textbox(px(left), px(top), px(max(width, 1)), px(max(height, 1)))
        text_frame = textbox.text_frame
        text_frame.margin_left = 0
        text_frame.margin_right = 0
        text_frame.margin_top = 0
        text_frame.margin_bottom = 0
        text_frame.word_wrap = True
        text_frame.auto_size = MSO_AUTO_SIZE.SHAPE_TO_FIT_TEXT
        return textbox

    def _add_runs(self, paragraph, spans: List[TextSpan], text: str, style: ResolvedTextStyle,
                  size: Optional[float] = None, color: Optional[RGBA] = None,
                  italic: bool = False, bold: bool = False) -> None:
        """Add one run per span, carrying bold/italic/strike/code/link marks."""
        for span in spans or [TextSpan(text=text)]:
            if not span.text:
                continue
            run = paragraph.add_run()
            run.text = span.text
            font = run.font
            font.size = Pt(size or style.font_size)
            font.name = self.code_family if span.code else style.font.family
            if span.bold or bold or style.is_bold:
                font.bold = True
            if span.italic or italic:
                font.italic = True
            if span.strike:
                # run.font.strike does not exist in python-pptx
                font._element.attrib['strike'] = 'sngStrike'
            if span.superscript:
                font._element.set('baseline', '30000')

            run_color = color or style.color
            if span.code:
                run_color = self._color('code_text') or run_color
            if span.href and is_valid_hyperlink(span.href):
                run.hyperlink.address = span.href
                run_color = self._color('link') or run_color
            if run_color is not None:
                font.color.rgb = rgb(run_color)

    def _text_shape(self, canvas: SlideCanvas, style: ResolvedTextStyle, text: str, spans: List[TextSpan],
                    **run_options):
        left, top, flows = self._position(canvas, style)
        width = canvas.width - canvas.padding - left
        height = self._text_height(text or spans_text(spans), style.font_size, width)
        textbox = self._add_textbox(canvas.handle, left, top, width, height)
        paragraph = textbox.text_frame.paragraphs[0]
        paragraph.alignment = ALIGNMENTS.get(canvas.align, PP_ALIGN.LEFT)
        paragraph.line_spacing = self.line_height
        self._add_runs(paragraph, spans, text, style, **run_options)
        self._track(canvas, [textbox], top, height, flows, style.spacing)
        return textbox

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    async def _render_paragraph(self, block: ParagraphBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        return self._text_shape(canvas, styles.paragraph, block.text, block.spans)

    async def _render_heading(self, block: HeadingBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        textbox = self._text_shape(canvas, styles.heading(block.level), block.text, block.spans)
        textbox.name = f"Heading {block.level}"
        return textbox

    def _flatten_bullets(self, items: List[BulletItem], level: int, ordered: bool,
                         start: int) -> Iterator[Tuple[int, str, BulletItem]]:
        for offset, item in enumerate(items):
            marker = f"{start + offset}." if ordered else BULLET_MARKERS[min(level, len(BULLET_MARKERS) - 1)]
            yield level, marker, item
            if item.children:
                yield from self._flatten_bullets(item.children, level + 1, item.children_ordered,
                                                 item.children_start)

    async def _render_bullets(self, block: BulletsBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        style = styles.bullet
        entries = list(self._flatten_bullets(block.items, 0, block.ordered, block.start))
        if not entries:
            return None

        left, top, flows = self._position(canvas, style)
        width = canvas.width - canvas.padding - left
        measure = '\n'.join('    ' * level + f"{marker} {item.text or spans_text(item.spans)}"
                            for level, marker, item in entries)
        height = (self._text_height(measure, style.font_size, width)
                  + self.bullet_spacing * (len(entries) - 1))
        textbox = self._add_textbox(canvas.handle, left, top, width, height)
        text_frame = textbox.text_frame

        for i, (level, marker, item) in enumerate(entries):
            paragraph = text_frame.paragraphs[0] if i == 0 else text_frame.add_paragraph()
            paragraph.alignment = ALIGNMENTS.get(canvas.align, PP_ALIGN.LEFT)
            paragraph.line_spacing = self.line_height
            paragraph.space_after = Pt(self.bullet_spacing)

            # Prepend bullet/number run
            bullet_run = paragraph.add_run()
            bullet_run.text = '    ' * level + f"{marker} "
            bullet_run.font.size = Pt(style.font_size)
            bullet_run.font.name = style.font.family
            if style.color is not None:
                bullet_run.font.color.rgb = rgb(style.color)

            self._add_runs(paragraph, item.spans, item.text, style)

        self._track(canvas, [textbox], top, height, flows, style.spacing)
        return textbox

    async def _render_code(self, block: CodeBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        style = styles.code
        lines = block.code.split('\n')
        left, top, flows = self._position(canvas, style)
        width = canvas.width - canvas.padding - left
        height = len(lines) * style.font_size * self.line_height + 2 * CODE_PADDING

        textbox = self._add_textbox(canvas.handle, left, top, width, height)
        textbox.name = f"Code ({block.language})" if block.language else "Code"
        text_frame = textbox.text_frame
        text_frame.auto_size = MSO_AUTO_SIZE.NONE
        for margin in ('margin_left', 'margin_right', 'margin_top', 'margin_bottom'):
            setattr(text_frame, margin, px(CODE_PADDING))

        background = self._color('code_background')
        if background is not None:
            textbox.fill.solid()
            textbox.fill.fore_color.rgb = rgb(background)

        for i, line in enumerate(lines):
            paragraph = text_frame.paragraphs[0] if i == 0 else text_frame.add_paragraph()
            paragraph.line_spacing = self.line_height
            if not line:
                continue
            run = paragraph.add_run()
            run.text = line
            run.font.size = Pt(style.font_size)
            run.font.name = style.font.family
            if style.color is not None:
                run.font.color.rgb = rgb(style.color)

        self._track(canvas, [textbox], top, height, flows, style.spacing)
        return textbox

    async def _render_image(self, block: ImageBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        images = self.context.images
        key = images.key_for(url=block.url, data_base64=block.data_base64, source=block.source)
        image = await images.get(key) if key is not None else None
        if key is None:
            self.context.notify_once(("image", block.url), f'Failed to load image "{block.url}"')

        left, top, flows = self._position(canvas, x=block.x, y=block.y)
        if image is None:
            placeholder = self._text_shape(
                canvas, styles.paragraph, f"[image: {block.alt or block.url}]", [],
                italic=True, color=self._color('quote_text'),
            )
            placeholder.name = "Image placeholder"
            return placeholder

        width = block.width or min(image.width, canvas.content_width)
        height = block.height or (width * image.height / image.width if image.width else image.height)
        if block.width is None and block.height is None:
            available = canvas.height - canvas.padding - top
            if 0 < available < height:
                width, height = width * available / height, available

        picture = canvas.handle.shapes.add_picture(image.stream(), px(left), px(top), width=px(width), height=px(height))
        if block.alt:
            picture._element.nvPicPr.cNvPr.set('descr', block.alt)
        self._track(canvas, [picture], top, height, flows)
        return picture

    async def _render_blockquote(self, block: BlockquoteBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        style = styles.paragraph
        left, top, flows = self._position(canvas, style)
        text_left = left + QUOTE_BAR_WIDTH + 24
        width = canvas.width - canvas.padding - text_left
        height = self._text_height(block.text or spans_text(block.spans), style.font_size, width)

        bar = canvas.handle.shapes.add_shape(MSO_SHAPE.RECTANGLE, px(left), px(top), px(QUOTE_BAR_WIDTH), px(height))
        bar_color = self._color('quote_bar')
        if bar_color is not None:
            bar.fill.solid()
            bar.fill.fore_color.rgb = rgb(bar_color)
        bar.line.fill.background()  # no border

        textbox = self._add_textbox(canvas.handle, text_left, top, width, height)
        paragraph = textbox.text_frame.paragraphs[0]
        paragraph.line_spacing = self.line_height
        self._add_runs(paragraph, block.spans, block.text, style, italic=True, color=self._color('quote_text'))

        self._track(canvas, [bar, textbox], top, height, flows, style.spacing)
        return textbox

    async def _render_table(self, block: TableBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        style = styles.paragraph
        all_rows = ([block.headers] if block.headers else []) + block.rows
        cols = max((len(row) for row in all_rows), default=0)
        if cols == 0:
            return None

        font_size = max(8, style.font_size + self.table_font_delta)
        left, top, flows = self._position(canvas, style)
        width = canvas.width - canvas.padding - left
        row_height = font_size * self.line_height + 16
        height = row_height * len(all_rows)

        table_shape = canvas.handle.shapes.add_table(len(all_rows), cols, px(left), px(top), px(width), px(height))
        table = table_shape.table
        text_color = self._color('text')

        for r, row in enumerate(all_rows):
            is_header = bool(block.headers) and r == 0
            for c in range(cols):
                cell = table.cell(r, c)
                spans = row[c] if c < len(row) else []
                paragraph = cell.text_frame.paragraphs[0]
                align = block.align[c] if c < len(block.align) else None
                paragraph.alignment = ALIGNMENTS.get(align or "left", PP_ALIGN.LEFT)
                self._add_runs(paragraph, spans, "", style, size=font_size, color=text_color, bold=is_header)

        border = self.colors.get('table_border')
        if border and border.startswith('#'):
            self._apply_table_borders(table, border)
        for row in table.rows:
            for cell in row.cells:
                cell.fill.background()  # Force transparent background

        self._track(canvas, [table_shape], top, height, flows, style.spacing)
        return table_shape

    def _apply_table_borders(self, table, color_hex: str) -> None:
        """Apply solid borders to every cell using raw XML."""
        color_hex = color_hex.lstrip('#').lower()
        for row in table.rows:
            for cell in row.cells:
                tcPr = cell._tc.get_or_add_tcPr()
                for side in ("lnL", "lnR", "lnT", "lnB"):
                    for existing in tcPr.findall(qn(f'a:{side}')):
                        tcPr.remove(existing)
                    tcPr.append(parse_xml(
                        f'<a:{side} w="12700" {nsdecls("a")}>'
                        f'<a:solidFill><a:srgbClr val="{color_hex}"/></a:solidFill>'
                        f'<a:prstDash val="solid"/>'
                        f'</a:{side}>'
                    ))

    async def _render_link(self, block: LinkCardBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        context = self.context
        if block.node_id:
            ref = await context.link_nodes.get(block.node_id)
            if ref is not None:
                try:
                    return self._place_linked_node(block, ref, styles, canvas)
                except StaleReferenceError as exc:
                    logger.warning(f"Linked node {block.node_id!r} went stale: {exc}")
                    context.link_nodes.clear()
                    context.notify_once(("stale", block.node_id), f"Linked node was deleted: {block.node_id}")
        return self._render_link_fallback(block, styles, canvas)

    def _place_linked_node(self, block: LinkCardBlock, ref, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        left, top, flows = self._position(canvas, x=block.x, y=block.y)
        shape = self.host.clone_into(ref, canvas.handle)
        shape.left = px(left)
        shape.top = px(top)
        self._apply_text_overrides(shape, block.text_overrides)
        height = to_px(shape.height)
        shapes = [shape]

        if not block.hide_link:
            style = styles.paragraph
            size = max(8, style.font_size * 0.6)
            caption = self._add_textbox(canvas.handle, left, top + height + 8, to_px(shape.width), size * self.line_height)
            self._add_runs(caption.text_frame.paragraphs[0], [TextSpan(text=block.url, href=block.url)], "",
                           style, size=size)
            shapes.append(caption)
            height += 8 + size * self.line_height

        self._track(canvas, shapes, top, height, flows)
        return shape

    def _iter_text_shapes(self, shape):
        if hasattr(shape, 'shapes'):
            for child in shape.shapes:
                yield from self._iter_text_shapes(child)
        elif shape.has_text_frame:
            yield shape

    def _apply_text_overrides(self, shape, overrides) -> None:
        if not overrides:
            return
        for text_shape in self._iter_text_shapes(shape):
            override = overrides.get(text_shape.name)
            if override is None:
                continue
            paragraphs = text_shape.text_frame.paragraphs
            runs = paragraphs[0].runs
            text = override['text'] or spans_text(override['spans'])
            if runs:
                # Keep the template's formatting by reusing its first run
                runs[0].text = text
                for run in runs[1:]:
                    run._r.getparent().remove(run._r)
                for paragraph in paragraphs[1:]:
                    paragraph._p.getparent().remove(paragraph._p)
            else:
                text_shape.text_frame.text = text

    def _render_link_fallback(self, block: LinkCardBlock, styles: ResolvedSlideStyles, canvas: SlideCanvas):
        style = styles.paragraph
        left, top, flows = self._position(canvas, x=block.x, y=block.y)
        width = min(canvas.content_width, 720)
        height = style.font_size * self.line_height + 48

        card = canvas.handle.shapes.add_shape(MSO_SHAPE.ROUNDED_RECTANGLE, px(left), px(top), px(width), px(height))
        card.name = "Link card"
        background = self._color('code_background')
        if background is not None:
            card.fill.solid()
            card.fill.fore_color.rgb = rgb(background)
        card.line.fill.background()
        text_frame = card.text_frame
        text_frame.word_wrap = True
        self._add_runs(text_frame.paragraphs[0], [TextSpan(text=block.url, href=block.url)], "", style)

        self._track(canvas, [card], top, height, flows)
        return card

    # ------------------------------------------------------------------
    # Decorations
    # ------------------------------------------------------------------

    async def apply_background(self, canvas: SlideCanvas, fill) -> None:
        slide = canvas.handle
        if isinstance(fill, (SolidFill, StyleFill)):
            color = fill.color if isinstance(fill, SolidFill) else fill.style
            background = slide.background.fill
            background.solid()
            background.fore_color.rgb = rgb(color)
        elif isinstance(fill, GradientFill):
            background = slide.background.fill
            background.gradient()
            background.gradient_angle = fill.angle % 360
            # python-pptx exposes the two default stops; use the outermost ones
            stops = background.gradient_stops
            for stop, source in ((stops[0], fill.stops[0]), (stops[-1], fill.stops[-1])):
                stop.color.rgb = rgb(parse_color(source.color))
                stop.position = min(1.0, max(0.0, source.position))
            if len(fill.stops) > 2 and self.debug:
                logger.debug(f"Slide {canvas.index}: gradient reduced to its first and last stops")
        elif isinstance(fill, ImageFill):
            prs = self.host.prs
            picture = slide.shapes.add_picture(fill.image.stream(), 0, 0,
                                               width=prs.slide_width, height=prs.slide_height)
            picture.name = "Background image"
            # Move behind every other shape
            sp_tree = slide.shapes._spTree
            sp_tree.remove(picture._element)
            sp_tree.insert(2, picture._element)
        else:
            raise TypeError(f"Unsupported background fill {type(fill).__name__}")

    async def render_footnotes(self, canvas: SlideCanvas, footnotes: List[Footnote],
                               style: ResolvedTextStyle):
        size = max(8, style.font_size * 0.6)
        height = len(footnotes) * size * self.line_height
        top = canvas.height - canvas.padding / 2 - height
        textbox = self._add_textbox(canvas.handle, canvas.padding, top, canvas.content_width, height)
        textbox.name = "Footnotes"
        text_frame = textbox.text_frame
        color = self._color('quote_text')
        for i, footnote in enumerate(footnotes):
            paragraph = text_frame.paragraphs[0] if i == 0 else text_frame.add_paragraph()
            self._add_runs(paragraph, [TextSpan(text=f"{footnote.id}. ", superscript=True)], "", style,
                           size=size, color=color)
            self._add_runs(paragraph, footnote.spans, footnote.content, style, size=size, color=color)
        return textbox

    def _corner(self, canvas: SlideCanvas, position: str, width: float, height: float,
                pad_x: float, pad_y: float) -> Tuple[float, float]:
        vertical, _, horizontal = (position or "bottom-right").partition("-")
        if horizontal == "left":
            left = pad_x
        elif horizontal == "center":
            left = (canvas.width - width) / 2
        else:
            left = canvas.width - pad_x - width
        top = pad_y if vertical == "top" else canvas.height - pad_y - height
        return left, top

    def _replace_number_text(self, shape, current: int, total: int, text: str) -> None:
        replaced = False
        text_shapes = list(self._iter_text_shapes(shape))
        for text_shape in text_shapes:
            for paragraph in text_shape.text_frame.paragraphs:
                for run in paragraph.runs:
                    if "{{current}}" in run.text or "{{total}}" in run.text:
                        run.text = run.text.replace("{{current}}", str(current)).replace("{{total}}", str(total))
                        replaced = True
        if replaced or not text_shapes:
            return
        # No placeholders in the template: its first text frame shows the whole number
        runs = text_shapes[0].text_frame.paragraphs[0].runs
        if runs:
            runs[0].text = text
            for run in runs[1:]:
                run._r.getparent().remove(run._r)
        else:
            text_shapes[0].text_frame.text = text

    async def render_slide_number(self, canvas: SlideCanvas, text: str, spec: SlideNumberSpec,
                                  template=None, current: int = 0, total: int = 0):
        pad_x = spec.padding_x if spec.padding_x is not None else self.slide_number_padding[0]
        pad_y = spec.padding_y if spec.padding_y is not None else self.slide_number_padding[1]

        if template is not None:
            shape = self.host.clone_into(template, canvas.handle)
            self._replace_number_text(shape, current, total, text)
            width, height = to_px(shape.width), to_px(shape.height)
        else:
            size = spec.size or self.slide_number_size
            color = parse_color(spec.color) or self._color('slide_number')
            width = max(len(text) * size * 0.6, size * 2)
            height = size * self.line_height
            shape = self._add_textbox(canvas.handle, 0, 0, width, height)
            paragraph = shape.text_frame.paragraphs[0]
            horizontal = (spec.position or "").rpartition("-")[2]
            paragraph.alignment = ALIGNMENTS.get(horizontal, PP_ALIGN.RIGHT)
            self._add_runs(paragraph, [TextSpan(text=text)], "", canvas.styles.paragraph, size=size, color=color)

        left, top = self._corner(canvas, spec.position, width, height, pad_x, pad_y)
        shape.left = px(left)
        shape.top = px(top)
        shape.name = "Slide Number"
        return shape

    async def apply_transition(self, canvas: SlideCanvas, transition: TransitionSpec) -> None:
        element = transition_element(transition)
        slide_element = canvas.handle._element
        for existing in slide_element.findall(qn('p:transition')):
            slide_element.remove(existing)
        if element is None:
            if transition.style and transition.style != "none":
                logger.warning(f"Unknown transition style {transition.style!r}")
            return

        tag, direction = element
        attrs = f' spd="{transition_speed(transition.duration)}"'
        if transition.timing == "after-delay":
            attrs += f' advClick="0" advTm="{int((transition.delay or 0) * 1000)}"'
        dir_attr = f' dir="{direction}"' if direction else ""
        node = parse_xml(f'<p:transition {nsdecls("p")}{attrs}><p:{tag}{dir_attr}/></p:transition>')

        # p:transition follows p:clrMapOvr (or p:cSld) in the slide schema
        anchor = slide_element.find(qn('p:clrMapOvr'))
        if anchor is None:
            anchor = slide_element.cSld
        anchor.addnext(node)

    async def render_title(self, canvas: SlideCanvas, block: HeadingBlock, style: ResolvedTextStyle,
                           prefix_template, spacing: float):
        left, top, flows = self._position(canvas, style)
        prefix = self.host.clone_into(prefix_template, canvas.handle)
        prefix_width, prefix_height = to_px(prefix.width), to_px(prefix.height)

        text_left = left + prefix_width + spacing
        width = canvas.width - canvas.padding - text_left
        text = block.text or spans_text(block.spans)
        height = self._text_height(text, style.font_size, width)

        # Center the prefix against the first line of the title
        line_height = style.font_size * self.line_height
        prefix.left = px(left)
        prefix.top = px(top + max(0.0, (line_height - prefix_height) / 2))

        textbox = self._add_textbox(canvas.handle, text_left, top, width, height)
        textbox.name = f"Heading {block.level}"
        paragraph = textbox.text_frame.paragraphs[0]
        paragraph.line_spacing = self.line_height
        self._add_runs(paragraph, block.spans, block.text, style)

        self._track(canvas, [prefix, textbox], top, max(height, prefix_height), flows, style.spacing)
        return textbox
