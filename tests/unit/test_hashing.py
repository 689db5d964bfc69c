import copy
import random
import string

from slide_sync.hashing import canonical_json, content_hash, content_hash_sampled, slide_digest
from slide_sync.models import SlideBackground, SlideDocument, SlideNumberSpec, TextSpan, TransitionSpec
from slide_sync.validator import validate_slides

BASE_SLIDE = {
    "blocks": [
        {"kind": "paragraph", "text": "Hello", "spans": [{"text": "Hello", "bold": False}]},
        {"kind": "heading", "level": 2, "text": "Title"},
        {"kind": "bullets", "items": ["one", {"text": "two", "children": ["two-a"]}]},
        {"kind": "code", "language": "python", "code": "print(1)"},
        {"kind": "table", "headers": [[{"text": "A"}], [{"text": "B"}]],
         "rows": [[[{"text": "1"}], [{"text": "2"}]]]},
        {"kind": "image", "url": "chart.png", "dataBase64": "iVBORw0KGgo=", "size": {"width": 100}},
        {"kind": "link", "link": {"url": "https://www.figma.com/design/abc/Deck?node-id=1-2",
                                  "textOverrides": {"Title": "Card"}}},
    ],
    "background": {"solid": "#ffffff"},
    "slideNumber": {"show": True},
    "transition": {"style": "dissolve", "duration": 0.3},
    "titlePrefix": {"nodeId": "7:7", "spacing": 16},
    "footnotes": [{"id": "1", "content": "Source"}],
}


def _base_document() -> SlideDocument:
    return validate_slides([copy.deepcopy(BASE_SLIDE)])[0]


def _random_text(rng, length=8):
    return ''.join(rng.choice(string.ascii_letters + string.digits) for _ in range(length))


def _mutate(document: SlideDocument, rng: random.Random) -> None:
    choice = rng.randrange(16)
    paragraph, heading, bullets, code, table, image, link = document.blocks
    if choice == 0:
        paragraph.text = _random_text(rng)
    elif choice == 1:
        heading.level = rng.choice((1, 3, 4))
        heading.text = _random_text(rng, 4)
    elif choice == 2:
        bullets.items[rng.randrange(len(bullets.items))].text = _random_text(rng)
    elif choice == 3:
        bullets.items[1].children[0].text = _random_text(rng)
    elif choice == 4:
        paragraph.spans.append(TextSpan(text=_random_text(rng), italic=rng.random() < 0.5))
    elif choice == 5:
        document.background = SlideBackground(solid=f"#{rng.randrange(16 ** 6):06x}")
    elif choice == 6:
        code.code = f"print({rng.randrange(10 ** 9)})"
    elif choice == 7:
        document.slide_number = SlideNumberSpec(format=_random_text(rng), start_from=rng.randrange(1, 5))
    elif choice == 8:
        row = rng.choice(table.rows + [table.headers])
        row[rng.randrange(len(row))][0].text = _random_text(rng)
    elif choice == 9:
        image.data_base64 = _random_text(rng, 12)
    elif choice == 10:
        image.width = float(rng.randrange(1, 10 ** 6))
        image.url = _random_text(rng) + ".png"
    elif choice == 11:
        link.text_overrides["Title"] = {"text": _random_text(rng), "spans": []}
    elif choice == 12:
        link.url = f"https://www.figma.com/design/{_random_text(rng)}/Deck?node-id=1-2"
    elif choice == 13:
        document.transition = TransitionSpec(style=rng.choice(("dissolve", "push", "slide-from-left")),
                                             duration=rng.randrange(1, 10 ** 6) / 1000)
    elif choice == 14:
        document.title_prefix.node_id = f"{rng.randrange(10 ** 6)}:{rng.randrange(10 ** 3)}"
        document.title_prefix.spacing = float(rng.randrange(10 ** 6))
    else:
        document.footnotes[0].content = _random_text(rng)


def test_content_hash_is_deterministic_and_short():
    assert content_hash("abc") == content_hash("abc")
    assert content_hash("abc") != content_hash("abd")
    assert len(content_hash("abc")) == 16


def test_sampled_hash_equals_full_hash_below_threshold():
    rng = random.Random(7)
    for length in (0, 1, 10, 999, 1000, 1999, 2000):
        text = ''.join(rng.choice(string.printable) for _ in range(length))
        assert content_hash_sampled(text, 1000) == content_hash(text)


def test_sampled_hash_uses_head_tail_and_length():
    head, tail = "h" * 1000, "t" * 1000
    a = head + "x" * 500 + tail
    b = head + "y" * 500 + tail
    c = head + "y" * 501 + tail

    # Same head, tail and length collide by construction
    assert content_hash_sampled(a) == content_hash_sampled(b)
    assert content_hash_sampled(a) != content_hash(a)
    assert content_hash_sampled(b) != content_hash_sampled(c)


def test_total_only_affects_slides_with_numbers():
    numbered = _base_document()
    plain = _base_document()
    plain.slide_number = None

    assert slide_digest(numbered, 3) != slide_digest(numbered, 4)
    assert slide_digest(plain, 3) == slide_digest(plain, 4)

    hidden = _base_document()
    hidden.slide_number.show = False
    assert slide_digest(hidden, 3) == slide_digest(hidden, 4)


def test_digest_detects_randomized_single_field_mutations():
    rng = random.Random(20240501)
    base = _base_document()
    base_canonical = canonical_json(base.to_dict())
    base_digest = slide_digest(base, 5)

    digests = {}
    for _ in range(10_000):
        mutated = copy.deepcopy(base)
        _mutate(mutated, rng)
        canonical = canonical_json(mutated.to_dict())
        if canonical == base_canonical:
            continue
        digest = slide_digest(mutated, 5)
        assert digest != base_digest
        digests[canonical] = digest

    assert len(digests) > 9_000
    # Distinct documents never share a digest
    assert len(set(digests.values())) == len(digests)
