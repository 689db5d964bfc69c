"""Slide-level decorations: background, slide number and title prefix."""
import logging
from typing import Optional

from .css_utils import parse_color
from .errors import StaleReferenceError
from .models import HeadingBlock, SlideBackground, SlideNumberSpec, TitlePrefixSpec
from .renderer import GradientFill, ImageFill, SlideCanvas, SolidFill, StyleFill
from .styles import ResolvedTextStyle

logger = logging.getLogger(__name__)

DEFAULT_SLIDE_NUMBER_FORMAT = "{{current}} / {{total}}"
DEFAULT_START_FROM = 2


async def apply_background(context, canvas: SlideCanvas, background: Optional[SlideBackground]) -> bool:
    """
    Apply *background* to the slide. Returns True when a fill was applied.

    Priority: template style > gradient > solid > image.
    """
    if background is None:
        return False
    renderer = context.renderer

    if background.template_style:
        style = await context.styles.get(background.template_style)
        if style is None:
            return False
        await renderer.apply_background(canvas, StyleFill(style=style, name=background.template_style))
        return True

    if background.gradient_stops:
        stops = [stop for stop in background.gradient_stops if parse_color(stop.color) is not None]
        if len(stops) < 2:
            context.notify_once(("gradient", canvas.index), "Gradient background needs at least two valid colors")
            return False
        await renderer.apply_background(canvas, GradientFill(stops=stops, angle=background.gradient_angle))
        return True

    if background.solid:
        color = parse_color(background.solid)
        if color is None:
            context.notify_once(("color", background.solid), f'Invalid color "{background.solid}"')
            return False
        await renderer.apply_background(canvas, SolidFill(color=color))
        return True

    if background.image:
        image = background.image
        key = context.images.key_for(url=image.url, data_base64=image.data_base64, source=image.source)
        if key is None:
            context.notify_once(("background-image", image.url),
                                f'Failed to load background image "{image.url}"')
            return False
        handle = await context.images.get(key)
        if handle is None:
            return False
        await renderer.apply_background(canvas, ImageFill(image=handle))
        return True

    return False


def format_slide_number(fmt: str, current: int, total: int) -> str:
    return fmt.replace("{{current}}", str(current)).replace("{{total}}", str(total))


def displayed_numbers(spec: SlideNumberSpec, current: int, total: int):
    """
    Numbers to display for slide *current* (1-based) of *total*, or None when
    the slide should not show a number.

    By default numbering starts on slide 2 so the cover is skipped and the
    first numbered slide reads "1".
    """
    if not spec.show:
        return None
    start_from = spec.start_from if spec.start_from is not None else DEFAULT_START_FROM
    if current < start_from:
        return None
    offset = spec.offset if spec.offset is not None else -(start_from - 1)
    displayed_current = current + offset
    displayed_total = total - (start_from - 1) + (spec.offset or 0)
    return displayed_current, displayed_total


async def render_slide_number(context, canvas: SlideCanvas, spec: SlideNumberSpec, current: int, total: int):
    numbers = displayed_numbers(spec, current, total)
    if numbers is None:
        return None
    shown_current, shown_total = numbers
    text = format_slide_number(spec.format or DEFAULT_SLIDE_NUMBER_FORMAT, shown_current, shown_total)
    renderer = context.renderer

    if spec.node_id:
        template = await context.slide_number_nodes.get(spec.node_id)
        if template is not None:
            try:
                return await renderer.render_slide_number(
                    canvas, text, spec, template=template, current=shown_current, total=shown_total,
                )
            except StaleReferenceError as exc:
                logger.warning(f"Slide number template {spec.node_id!r} went stale: {exc}")
                context.slide_number_nodes.clear()
                context.notify_once(("stale", spec.node_id),
                                    f"Slide number template was deleted: {spec.node_id}")
        # Fall through to plain text when the template is unusable

    return await renderer.render_slide_number(canvas, text, spec, current=shown_current, total=shown_total)


async def render_title(context, canvas: SlideCanvas, block: HeadingBlock, style: ResolvedTextStyle,
                       prefix: TitlePrefixSpec):
    """Render a title heading with its prefix node, or plainly when the prefix is unusable."""
    renderer = context.renderer
    if prefix.node_id:
        template = await context.prefix_nodes.get(prefix.node_id)
        if template is not None:
            try:
                return await renderer.render_title(canvas, block, style, template, prefix.spacing)
            except StaleReferenceError as exc:
                logger.warning(f"Title prefix {prefix.node_id!r} went stale: {exc}")
                context.prefix_nodes.clear()
                context.notify_once(("stale", prefix.node_id), f"Title prefix node was deleted: {prefix.node_id}")
    return await renderer.render_block(block, canvas.styles, canvas)
