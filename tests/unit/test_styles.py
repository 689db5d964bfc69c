import asyncio

import pytest

from slide_sync.caches import FontCache
from slide_sync.css_utils import RGBA
from slide_sync.models import FontVariant, SlideStyles, TextStyle
from slide_sync.styles import (
    ResolvedFont, StyleResolver, apply_font_fallbacks, collect_font_names, map_to_fallback_variant,
)

from fakes import FakeHost


@pytest.mark.parametrize("variant,expected", [
    ("Regular", "Regular"),
    ("Book", "Regular"),
    ("SemiBold", "Bold"),
    ("Medium", "Bold"),
    ("Black", "Bold"),
    ("heavy", "Bold"),
    ("DemiBold", "Bold"),
    ("Oblique", "Italic"),
    ("Light Italic", "Italic"),
    ("SemiBold Italic", "Bold Italic"),
    ("BLACK OBLIQUE", "Bold Italic"),
])
def test_map_to_fallback_variant(variant, expected):
    assert map_to_fallback_variant(variant) == expected


def test_defaults_come_from_theme_css():
    styles = StyleResolver("default").resolve()
    assert styles.h1.font_size == 64
    assert styles.h2.font_size == 48
    assert styles.paragraph.font_size == 24
    assert styles.code.font_size == 16
    assert styles.paragraph.font.family == "Calibri"
    assert styles.code.font.family == "Courier New"
    assert styles.h1.is_bold and not styles.paragraph.is_bold
    assert styles.heading(4) is styles.h4


def test_overrides_merge_over_defaults():
    overrides = SlideStyles(
        headings={"h2": TextStyle(size=52, color="#ff0000", x=40)},
        paragraphs=TextStyle(color="not-a-color"),
    )
    styles = StyleResolver("default").resolve(overrides)
    assert styles.h2.font_size == 52
    assert styles.h2.color == RGBA(255, 0, 0)
    assert styles.h2.x == 40
    # Untouched classes and unparseable colors keep the theme defaults
    assert styles.h1.font_size == 64
    assert styles.paragraph.color == RGBA(0x1f, 0x23, 0x28)


def test_font_fallback_is_all_or_nothing():
    resolver = StyleResolver("default")
    overrides = SlideStyles(fonts={"body": FontVariant(family="X", bold="SemiBold")})
    available = {("X", "Regular"), ("X", "Italic"), ("X", "Bold Italic")}
    available |= set(ResolvedFont("Calibri").pairs()) | set(ResolvedFont("Courier New").pairs())

    styles = resolver.resolve_available(overrides, available)
    font = styles.paragraph.font
    assert font.family == "Calibri"
    assert font.variants() == ("Regular", "Bold", "Italic", "Bold Italic")
    # Other classes were never affected
    assert styles.h1.font.family == "Calibri"


def test_font_kept_when_every_variant_is_available():
    resolver = StyleResolver("default")
    overrides = SlideStyles(fonts={"h1": FontVariant(family="Inter", style="Black", bold="ExtraBold")})
    styles = resolver.resolve(overrides)
    available = set(collect_font_names(styles))

    result = apply_font_fallbacks(styles, available, "Calibri")
    assert result.h1.font.family == "Inter"
    assert result.h1.font.regular == "Black"
    assert result.h1.font.bold == "ExtraBold"


def test_fallback_remaps_requested_variant_names():
    styles = StyleResolver("default").resolve(
        SlideStyles(fonts={"h2": FontVariant(family="Inter", style="Medium", italic="Oblique")})
    )
    result = apply_font_fallbacks(styles, set(), "Calibri")
    assert result.h2.font == ResolvedFont("Calibri", regular="Bold", bold="Bold", italic="Italic",
                                          bold_italic="Bold Italic")


def test_resolve_with_fonts_loads_through_the_cache():
    installed = set(ResolvedFont("Calibri").pairs()) | set(ResolvedFont("Courier New").pairs())
    installed |= {("Inter", "Regular"), ("Inter", "Italic"), ("Inter", "Bold Italic")}
    host = FakeHost(fonts=installed)
    cache = FontCache(host)
    resolver = StyleResolver("default")
    overrides = SlideStyles(fonts={"body": FontVariant(family="Inter")})

    styles = asyncio.run(resolver.resolve_with_fonts(overrides, cache))

    assert styles.paragraph.font.family == "Calibri"
    assert cache.is_negative(("Inter", "Bold"))
    assert host.notifications == [("Font not found: Inter Bold", True)]

    lookups = cache.lookups
    asyncio.run(resolver.resolve_with_fonts(overrides, cache))
    assert cache.lookups == lookups
    assert len(host.notifications) == 1
