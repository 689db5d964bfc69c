"""
Reconciliation engine.

Brings the host's tagged slides in line with a desired slide list. Each
index is either skipped (its content hash and node are unchanged since the
last render) or rendered onto a reused or fresh node; nodes past the end of
the list are destroyed.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Set, Tuple

from . import decorations
from .caches import FontCache, ImageCache, NodeCache, StyleCache
from .config import SyncConfig
from .errors import RenderError
from .hashing import slide_digest
from .host import SceneHost
from .models import HeadingBlock, RenderedSlideRecord, SlideDocument
from .renderer import BlockRenderer, SlideCanvas
from .styles import StyleResolver

logger = logging.getLogger(__name__)

TEMPLATE_KINDS = ("frame", "group", "component", "component_set", "instance")


class EngineContext:
    """
    Everything the engine mutates: the record map, the resource caches, the
    host and the renderer. Lives as long as the plugin process.
    """

    def __init__(self, host: SceneHost,
                 renderer_factory: Optional[Callable[["EngineContext"], BlockRenderer]] = None,
                 config: Optional[SyncConfig] = None,
                 resolver: Optional[StyleResolver] = None):
        self.config = config or SyncConfig()
        self.host = host
        self.records: Dict[int, RenderedSlideRecord] = {}

        debug = self.config.debug
        self.fonts = FontCache(host, debug=debug)
        self.styles = StyleCache(host, debug=debug)
        self.images = ImageCache(host, sample_size=self.config.hash_sample_size, debug=debug)
        self.prefix_nodes = NodeCache(host, TEMPLATE_KINDS, label="Title prefix", debug=debug)
        self.slide_number_nodes = NodeCache(host, TEMPLATE_KINDS, label="Slide number template", debug=debug)
        self.link_nodes = NodeCache(host, TEMPLATE_KINDS, label="Linked node", debug=debug)

        self.resolver = resolver or StyleResolver(self.config.theme, font_family=self.config.font_family)
        self.renderer: Optional[BlockRenderer] = renderer_factory(self) if renderer_factory else None
        self._notified: Set[Hashable] = set()

    def notify_once(self, key: Hashable, message: str) -> None:
        """User-facing notification for problems that are not cache lookups."""
        if key in self._notified:
            return
        self._notified.add(key)
        self.host.notify(message, error=True)

    def clear_caches(self) -> None:
        for cache in (self.fonts, self.styles, self.images,
                      self.prefix_nodes, self.slide_number_nodes, self.link_nodes):
            cache.clear()

    def reset(self) -> None:
        """Forget every record; the next run re-renders all slides."""
        self.records.clear()
        self.clear_caches()


@dataclass
class SyncReport:
    """Outcome of one run."""
    count: int
    rendered: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    destroyed: int = 0
    errors: List[Tuple[Optional[int], BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (f"{self.count} slides: {len(self.rendered)} rendered, {len(self.skipped)} skipped, "
                f"{self.destroyed} removed")


class ReconciliationEngine:
    """Runs one reconciliation at a time against an :class:`EngineContext`."""

    def __init__(self, context: EngineContext):
        if context.renderer is None:
            raise ValueError("EngineContext has no renderer")
        self.context = context

    @property
    def host(self) -> SceneHost:
        return self.context.host

    @property
    def renderer(self) -> BlockRenderer:
        return self.context.renderer

    async def run(self, documents: Sequence[SlideDocument]) -> SyncReport:
        """
        Reconcile the host with *documents*.

        Raises:
            RenderError: after the whole run when any slide failed. Records
                written for other slides in this run are kept.
        """
        context = self.context
        total = len(documents)
        report = SyncReport(count=total)

        # Classification only looks at state captured here, before any mutation
        unconsumed, extras = await self._discover()
        records = dict(context.records)

        for index, document in enumerate(documents):
            digest = slide_digest(document, total)
            record = records.get(index)
            node = unconsumed.pop(index, None)

            if record is not None and node is not None and record.content_hash == digest \
                    and self.host.node_id(node) == record.node_id:
                report.skipped.append(index)
                if context.config.debug:
                    logger.debug(f"Slide {index}: unchanged ({digest})")
                continue

            try:
                await self._render_slide(index, document, node, digest, total)
            except Exception as exc:
                logger.error(f"Slide {index} failed to render: {exc}", exc_info=context.config.debug)
                # Without a record the next run renders this index again
                context.records.pop(index, None)
                report.errors.append((index, exc))
            else:
                report.rendered.append(index)

        for index, node in sorted(unconsumed.items()):
            await self._destroy(node, index, report)
            context.records.pop(index, None)
        for node in extras:
            await self._destroy(node, None, report)
        for index in [i for i in context.records if i >= total]:
            del context.records[index]

        logger.info(f"Sync finished: {report.summary()}")
        if report.errors:
            failed = ", ".join(str(i) for i, _ in report.errors if i is not None) or "cleanup"
            first = report.errors[0][1]
            error = RenderError(f"Failed to render slide(s) {failed}: {first}", report.errors)
            error.report = report
            raise error from first

        self.host.notify(f"Updated {total} slide{'s' if total != 1 else ''}")
        return report

    async def _discover(self) -> Tuple[Dict[int, Any], List[Any]]:
        """Map index -> tagged node; duplicates that lose the tie are returned as extras."""
        by_index: Dict[int, List[Any]] = {}
        for tag, handle in await self.host.list_tagged():
            try:
                index = int(tag)
            except (TypeError, ValueError):
                logger.debug(f"Ignoring node with unparseable tag {tag!r}")
                continue
            if index < 0:
                continue
            by_index.setdefault(index, []).append(handle)

        discovered: Dict[int, Any] = {}
        extras: List[Any] = []
        for index, handles in by_index.items():
            keep = handles[0]
            if len(handles) > 1:
                record = self.context.records.get(index)
                if record is not None:
                    keep = next((h for h in handles if self.host.node_id(h) == record.node_id), keep)
                logger.warning(f"{len(handles)} nodes tagged {index}; keeping {self.host.node_id(keep)}")
            discovered[index] = keep
            extras.extend(h for h in handles if h is not keep)
        return discovered, extras

    async def _render_slide(self, index: int, document: SlideDocument, node, digest: str, total: int) -> None:
        context = self.context
        host = self.host

        if node is None:
            node = await host.create_node()
            action = "created"
        else:
            await host.clear_node(node)
            action = "reused"
        await host.tag(node, str(index))

        styles = await context.resolver.resolve_with_fonts(document.styles, context.fonts)
        canvas = self.renderer.begin_slide(node, index, styles, align=document.align, valign=document.valign)

        await decorations.apply_background(context, canvas, document.background)
        await self._render_blocks(canvas, document)
        await self.renderer.finish_slide(canvas)

        if document.footnotes:
            await self.renderer.render_footnotes(canvas, document.footnotes, styles.paragraph)
        if document.slide_number is not None:
            await decorations.render_slide_number(context, canvas, document.slide_number, index + 1, total)
        if document.transition is not None and document.transition.style:
            await self.renderer.apply_transition(canvas, document.transition)

        context.records[index] = RenderedSlideRecord(content_hash=digest, node_id=host.node_id(node))
        if context.config.debug:
            logger.debug(f"Slide {index}: rendered on {action} node {host.node_id(node)}")

    async def _render_blocks(self, canvas: SlideCanvas, document: SlideDocument) -> None:
        prefix = document.title_prefix
        prefixed = False
        for block in document.blocks:
            if (prefix is not None and prefix.node_id and not prefixed
                    and isinstance(block, HeadingBlock) and block.level <= 2):
                prefixed = True
                node = await decorations.render_title(
                    self.context, canvas, block, canvas.styles.heading(block.level), prefix,
                )
            else:
                node = await self.renderer.render_block(block, canvas.styles, canvas)
            if node is None:
                logger.warning(f"Slide {canvas.index}: skipped block of kind {block.kind!r}")

    async def _destroy(self, node, index: Optional[int], report: SyncReport) -> None:
        node_id = self.host.node_id(node)
        try:
            await self.host.destroy(node)
        except Exception as exc:
            logger.error(f"Failed to remove node {node_id}: {exc}")
            report.errors.append((index, exc))
        else:
            report.destroyed += 1
