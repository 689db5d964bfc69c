import base64

import pytest

from slide_sync.config import SyncConfig
from slide_sync.errors import ValidationError
from slide_sync.models import BulletsBlock, LinkCardBlock, ParagraphBlock, UnknownBlock
from slide_sync.validator import validate_payload, validate_slides

from fakes import text_slide


def _bullet_chain(depth):
    item = {"text": "leaf"}
    for level in range(depth):
        item = {"text": f"level {level}", "children": [item]}
    return {"kind": "bullets", "items": [item]}


def _nested_bullets(width, depth):
    if depth == 0:
        return [f"leaf {i}" for i in range(width)]
    return [{"text": f"item {i}", "children": _nested_bullets(width, depth - 1)} for i in range(width)]


@pytest.mark.parametrize("payload", [None, "slides", {"blocks": []}, 42])
def test_non_list_payload_is_rejected(payload):
    with pytest.raises(ValidationError):
        validate_slides(payload)


def test_empty_payload_is_rejected():
    with pytest.raises(ValidationError, match="No slides"):
        validate_slides([])


def test_slide_count_bound():
    assert len(validate_slides([text_slide("x") for _ in range(100)])) == 100
    with pytest.raises(ValidationError, match="Too many slides"):
        validate_slides([text_slide("x") for _ in range(101)])


def test_block_count_bound():
    assert len(validate_slides([text_slide(*["x"] * 50)])[0].blocks) == 50
    with pytest.raises(ValidationError, match="too many blocks"):
        validate_slides([text_slide("ok"), text_slide(*["x"] * 51)])


def test_non_object_slide_rejects_whole_payload():
    with pytest.raises(ValidationError, match="Slide 1"):
        validate_slides([text_slide("ok"), "not a slide"])


def test_long_string_is_truncated_with_marker():
    document = validate_slides([text_slide("a" * 100_001)])[0]
    text = document.blocks[0].text
    assert text == "a" * 100_000 + "... (truncated)"


def test_base64_image_data_is_never_truncated():
    data = base64.b64encode(bytes(range(256)) * 400).decode()
    assert len(data) > 100_000
    slide = {
        "blocks": [{"kind": "image", "url": "chart.png", "dataBase64": data}],
        "background": {"image": {"url": "bg.png", "dataBase64": data}},
    }

    document = validate_slides([slide])[0]

    assert document.blocks[0].data_base64 == data
    assert document.background.image.data_base64 == data
    assert base64.b64decode(document.blocks[0].data_base64) == bytes(range(256)) * 400


def test_deeply_nested_payload_is_rejected():
    with pytest.raises(ValidationError, match="nested too deeply"):
        validate_slides([{"blocks": [_bullet_chain(400)]}])

    document = validate_slides([{"blocks": [_bullet_chain(10)]}])[0]
    item = document.blocks[0].items[0]
    for _ in range(10):
        item = item.children[0]
    assert item.text == "leaf"


def test_nesting_limit_is_configurable():
    config = SyncConfig(max_nesting_depth=8)
    with pytest.raises(ValidationError):
        validate_slides([{"blocks": [_bullet_chain(4)]}], config)
    assert validate_slides([{"blocks": [_bullet_chain(2)]}], config)


def test_string_at_limit_is_untouched():
    document = validate_slides([text_slide("a" * 100_000)])[0]
    assert document.blocks[0].text == "a" * 100_000


def test_span_lists_are_capped():
    spans = [{"text": str(i)} for i in range(600)]
    document = validate_slides([{"blocks": [{"kind": "paragraph", "text": "", "spans": spans}]}])[0]
    assert len(document.blocks[0].spans) == 500
    assert document.blocks[0].spans[-1].text == "499"


def test_bullet_items_are_capped_at_every_level():
    block = {"kind": "bullets", "items": _nested_bullets(120, 2)[:2]}
    block["items"][0]["children"] = _nested_bullets(150, 1)
    block["items"][0]["children"][0]["children"] = [f"deep {i}" for i in range(130)]
    document = validate_slides([{"blocks": [block]}])[0]

    bullets = document.blocks[0]
    assert isinstance(bullets, BulletsBlock)
    first = bullets.items[0]
    assert len(first.children) == 100
    assert len(first.children[0].children) == 100
    assert len(first.children[1].children) == 100

    top = validate_slides([{"blocks": [{"kind": "bullets", "items": [f"i{n}" for n in range(250)]}]}])[0]
    assert len(top.blocks[0].items) == 100


def test_nested_bullet_strings_are_truncated():
    block = {"kind": "bullets", "items": [{"text": "top", "children": ["b" * 100_050]}]}
    document = validate_slides([{"blocks": [block]}])[0]
    assert document.blocks[0].items[0].children[0].text.endswith("... (truncated)")


@pytest.mark.parametrize("url,kept", [
    ("https://www.figma.com/design/abc123/Deck?node-id=1-2", True),
    ("https://figma.com/file/abc123/Deck", True),
    ("https://evil.example.com/design/abc123", False),
    ("https://evilfigma.com/design/abc123", False),
    ("javascript:alert(1)", False),
])
def test_link_cards_outside_allow_list_are_dropped(url, kept):
    slide = {"blocks": [{"kind": "figma", "link": {"url": url}}, {"kind": "paragraph", "text": "stays"}]}
    blocks = validate_slides([slide])[0].blocks
    assert isinstance(blocks[-1], ParagraphBlock)
    assert any(isinstance(block, LinkCardBlock) for block in blocks) is kept


def test_allow_list_is_configurable():
    config = SyncConfig(allowed_link_hosts=("example.com",))
    slide = {"blocks": [{"kind": "link", "url": "https://docs.example.com/x?node-id=3-4"}]}
    block = validate_slides([slide], config)[0].blocks[0]
    assert isinstance(block, LinkCardBlock)
    assert block.node_id == "3:4"


def test_invalid_span_href_is_dropped_but_text_kept():
    spans = [
        {"text": "safe", "href": "https://example.com"},
        {"text": "bad", "href": "javascript:alert(1)"},
        {"text": "mail", "href": "mailto:a@example.com"},
    ]
    block = validate_slides([{"blocks": [{"kind": "paragraph", "text": "", "spans": spans}]}])[0].blocks[0]
    assert [span.text for span in block.spans] == ["safe", "bad", "mail"]
    assert [span.href for span in block.spans] == ["https://example.com", None, "mailto:a@example.com"]


def test_malformed_blocks_are_dropped():
    slide = {"blocks": ["text", {"text": "no kind"}, {"kind": "heading", "level": 9, "text": "x"},
                        {"kind": "paragraph", "text": "ok"}]}
    blocks = validate_slides([slide])[0].blocks
    assert len(blocks) == 1
    assert blocks[0].text == "ok"


def test_unknown_block_kind_is_kept_for_the_renderer():
    blocks = validate_slides([{"blocks": [{"kind": "columns", "columns": []}]}])[0].blocks
    assert isinstance(blocks[0], UnknownBlock)
    assert blocks[0].kind == "columns"


def test_slide_settings_are_parsed():
    slide = text_slide("x", background={"solid": "#000000"}, slideNumber={"startFrom": 1},
                       transition="dissolve", titlePrefix={"link": "https://figma.com/design/k?node-id=5-6"})
    document = validate_slides([slide])[0]
    assert document.background.solid == "#000000"
    assert document.slide_number.start_from == 1
    assert document.transition.style == "dissolve"
    assert document.title_prefix.node_id == "5:6"
    assert document.title_prefix.spacing == 16


def test_payload_envelope():
    message = {"type": "generate-slides", "slides": [text_slide("hi")]}
    assert len(validate_payload(message)) == 1
    with pytest.raises(ValidationError, match="Unknown message type"):
        validate_payload({"type": "ping"})
    with pytest.raises(ValidationError):
        validate_payload({"type": "generate-slides"})
