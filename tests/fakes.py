"""In-memory host and renderer used by the engine, cache and plugin tests."""
import asyncio
import itertools
from collections import Counter

from slide_sync.errors import ResourceResolutionError, StaleReferenceError
from slide_sync.host import HostNodeRef, SceneHost
from slide_sync.models import BLOCK_TYPES
from slide_sync.renderer import BlockRenderer, SlideCanvas

_node_ids = itertools.count(1)


class FakeNode:
    def __init__(self):
        self.id = f"node-{next(_node_ids)}"
        self.tag = None
        self.children = []
        self.background = None
        self.transition = None

    def __repr__(self):
        return f"FakeNode({self.id}, tag={self.tag!r})"


class FakeHost(SceneHost):
    """
    Scene graph as a plain list of nodes.

    ``fonts=None`` means every font is installed; otherwise only the listed
    (family, variant) pairs load.
    """

    def __init__(self, fonts=None, styles=None, templates=None, remote=None, delay=0.0):
        self.nodes = []
        self.fonts = set(fonts) if fonts is not None else None
        self.styles = dict(styles or {})
        self.templates = dict(templates or {})
        self.remote = dict(remote or {})
        self.delay = delay
        self.notifications = []
        self.calls = Counter()

    async def list_tagged(self):
        self.calls['list_tagged'] += 1
        return [(node.tag, node) for node in self.nodes if node.tag is not None]

    async def tag(self, handle, value):
        handle.tag = value

    def node_id(self, handle):
        return handle.id

    async def create_node(self):
        self.calls['create'] += 1
        node = FakeNode()
        self.nodes.append(node)
        return node

    async def clear_node(self, handle):
        self.calls['clear'] += 1
        handle.children.clear()
        handle.background = None
        handle.transition = None

    async def destroy(self, handle):
        self.calls['destroy'] += 1
        self.nodes.remove(handle)

    async def load_font(self, family, variant):
        self.calls['load_font'] += 1
        await asyncio.sleep(self.delay)
        if self.fonts is not None and (family, variant) not in self.fonts:
            raise ResourceResolutionError((family, variant), "not installed")

    async def import_style(self, name):
        self.calls['import_style'] += 1
        await asyncio.sleep(self.delay)
        return self.styles.get(name)

    async def create_image(self, data):
        self.calls['create_image'] += 1
        return ("image", data)

    async def fetch_remote(self, url):
        self.calls['fetch_remote'] += 1
        await asyncio.sleep(self.delay)
        if url not in self.remote:
            raise ConnectionError(f"cannot reach {url}")
        return self.remote[url]

    async def lookup_node(self, node_id):
        self.calls['lookup_node'] += 1
        await asyncio.sleep(self.delay)
        return self.templates.get(node_id)

    def notify(self, message, error=False):
        self.notifications.append((message, error))

    def tagged(self):
        return {node.tag: node for node in self.nodes if node.tag is not None}


def template(node_id, kind="frame", **extra):
    """A template node ref whose handle is a mutable dict (set ``deleted`` to make it stale)."""
    return HostNodeRef(node_id=node_id, kind=kind, handle={"deleted": False}, **extra)


class FakeRenderer(BlockRenderer):
    """Records what would be drawn as tuples on the FakeNode."""

    def __init__(self, context, fail_on=None):
        self.context = context
        self.fail_on = fail_on
        self.rendered = []

    def begin_slide(self, handle, index, styles, align="left", valign="top"):
        return SlideCanvas(handle=handle, index=index, width=1920, height=1080, padding=100,
                           styles=styles, align=align, valign=valign)

    async def render_block(self, block, style, canvas):
        if block.kind not in BLOCK_TYPES:
            return None
        if self.fail_on is not None and self.fail_on(block):
            raise RuntimeError(f"cannot draw {block.kind}")
        node = ("block", block.kind, getattr(block, "text", None))
        canvas.handle.children.append(node)
        self.rendered.append((canvas.index, block.kind))
        return node

    async def apply_background(self, canvas, fill):
        canvas.handle.background = fill

    async def render_footnotes(self, canvas, footnotes, style):
        node = ("footnotes", [footnote.id for footnote in footnotes])
        canvas.handle.children.append(node)
        return node

    async def render_slide_number(self, canvas, text, spec, template=None, current=0, total=0):
        if template is not None and template.handle.get("deleted"):
            raise StaleReferenceError(template.node_id)
        node = ("slide-number", text, template.node_id if template is not None else None)
        canvas.handle.children.append(node)
        return node

    async def apply_transition(self, canvas, transition):
        canvas.handle.transition = transition.style

    async def render_title(self, canvas, block, style, prefix_template, spacing):
        if prefix_template.handle.get("deleted"):
            raise StaleReferenceError(prefix_template.node_id)
        node = ("title", prefix_template.node_id, block.text, spacing)
        canvas.handle.children.append(node)
        return node


def text_slide(*texts, **settings):
    """Raw payload slide with one paragraph block per text."""
    return dict(blocks=[{"kind": "paragraph", "text": text} for text in texts], **settings)
