"""
Style resolution: per-slide overrides merged onto theme defaults, followed by
all-or-nothing font fallback.
"""
import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .css_utils import CSSParser, RGBA, parse_color
from .models import FontVariant, SlideStyles, TextStyle

logger = logging.getLogger(__name__)

REGULAR = "Regular"
BOLD = "Bold"
ITALIC = "Italic"
BOLD_ITALIC = "Bold Italic"

STYLE_CLASSES = ("h1", "h2", "h3", "h4", "paragraph", "bullet", "code")

_BOLD_HINTS = ("bold", "black", "heavy", "semi", "demi", "medium")
_ITALIC_HINTS = ("italic", "oblique")


@dataclass(frozen=True)
class ResolvedFont:
    """Four concrete variants of one family."""
    family: str
    regular: str = REGULAR
    bold: str = BOLD
    italic: str = ITALIC
    bold_italic: str = BOLD_ITALIC

    def variants(self) -> Tuple[str, str, str, str]:
        return (self.regular, self.bold, self.italic, self.bold_italic)

    def pairs(self) -> List[Tuple[str, str]]:
        return [(self.family, variant) for variant in self.variants()]

    def pick(self, bold: bool = False, italic: bool = False) -> str:
        if bold and italic:
            return self.bold_italic
        if bold:
            return self.bold
        if italic:
            return self.italic
        return self.regular


@dataclass(frozen=True)
class ResolvedTextStyle:
    font_size: float
    color: Optional[RGBA]
    font_style: str
    font: ResolvedFont
    x: Optional[float] = None
    y: Optional[float] = None
    spacing: Optional[float] = None

    @property
    def is_bold(self) -> bool:
        return map_to_fallback_variant(self.font_style) in (BOLD, BOLD_ITALIC)


@dataclass(frozen=True)
class ResolvedSlideStyles:
    h1: ResolvedTextStyle
    h2: ResolvedTextStyle
    h3: ResolvedTextStyle
    h4: ResolvedTextStyle
    paragraph: ResolvedTextStyle
    bullet: ResolvedTextStyle
    code: ResolvedTextStyle

    def heading(self, level: int) -> ResolvedTextStyle:
        return {1: self.h1, 2: self.h2, 3: self.h3}.get(level, self.h4)

    def items(self):
        return [(name, getattr(self, name)) for name in STYLE_CLASSES]


def map_to_fallback_variant(variant: str) -> str:
    """Map an arbitrary variant name onto the nearest of the four canonical ones."""
    normalized = variant.lower()
    is_italic = any(hint in normalized for hint in _ITALIC_HINTS)
    is_bold = any(hint in normalized for hint in _BOLD_HINTS)
    if is_bold and is_italic:
        return BOLD_ITALIC
    if is_bold:
        return BOLD
    if is_italic:
        return ITALIC
    return REGULAR


def collect_font_names(styles: ResolvedSlideStyles) -> List[Tuple[str, str]]:
    """Unique (family, variant) pairs needed by *styles*, in first-seen order."""
    pairs = []
    for _, style in styles.items():
        pairs.extend(style.font.pairs())
    return list(dict.fromkeys(pairs))


def apply_font_fallbacks(styles: ResolvedSlideStyles, available: Set[Tuple[str, str]],
                         fallback_family: str) -> ResolvedSlideStyles:
    """
    Replace the font of every class that misses any of its four variants.

    Fallback is per class and all-or-nothing so a single resolved style never
    mixes two families.
    """
    def resolve(font: ResolvedFont) -> ResolvedFont:
        if all(pair in available for pair in font.pairs()):
            return font
        return ResolvedFont(
            family=fallback_family,
            regular=map_to_fallback_variant(font.regular),
            bold=map_to_fallback_variant(font.bold),
            italic=map_to_fallback_variant(font.italic),
            bold_italic=map_to_fallback_variant(font.bold_italic),
        )

    return ResolvedSlideStyles(**{
        name: replace(style, font=resolve(style.font))
        for name, style in styles.items()
    })


class StyleResolver:
    """Theme-backed style defaults plus override merging."""

    def __init__(self, theme: str = "default", font_family: Optional[str] = None):
        self.theme = theme
        self.css_parser = CSSParser(theme)
        self.font_sizes = self.css_parser.get_font_sizes()
        self.colors = self.css_parser.get_colors()
        self.default_family = font_family or self.css_parser.get_font_family()
        self.code_family = self.css_parser.get_font_family('code-font-family')
        self._defaults = {
            'h1': (self.font_sizes['h1'], BOLD, self.colors.get('heading_text')),
            'h2': (self.font_sizes['h2'], BOLD, self.colors.get('heading_text')),
            'h3': (self.font_sizes['h3'], BOLD, self.colors.get('heading_text')),
            'h4': (self.font_sizes['h4'], BOLD, self.colors.get('heading_text')),
            'paragraph': (self.font_sizes['p'], REGULAR, self.colors.get('text')),
            'bullet': (self.font_sizes['li'], REGULAR, self.colors.get('text')),
            'code': (self.font_sizes['code'], REGULAR, self.colors.get('code_text')),
        }

    @property
    def fallback_family(self) -> str:
        return self.default_family

    def _resolve_font(self, name: str, variant: Optional[FontVariant], default_style: str) -> ResolvedFont:
        family = self.code_family if name == 'code' else self.default_family
        if variant is None:
            return ResolvedFont(family=family, regular=default_style)
        return ResolvedFont(
            family=variant.family or family,
            regular=variant.style or default_style,
            bold=variant.bold or BOLD,
            italic=variant.italic or ITALIC,
            bold_italic=variant.bold_italic or BOLD_ITALIC,
        )

    def _resolve_text_style(self, name: str, style: Optional[TextStyle],
                            variant: Optional[FontVariant]) -> ResolvedTextStyle:
        size, font_style, default_color = self._defaults[name]
        color = None
        if style is not None and style.color:
            color = parse_color(style.color)
            if color is None:
                logger.warning(f"Ignoring unparseable {name} color {style.color!r}")
        if color is None:
            color = parse_color(default_color)
        return ResolvedTextStyle(
            font_size=style.size if style is not None and style.size is not None else size,
            color=color,
            font_style=font_style,
            font=self._resolve_font(name, variant, font_style),
            x=style.x if style is not None else None,
            y=style.y if style is not None else None,
            spacing=style.spacing if style is not None else None,
        )

    def resolve(self, overrides: Optional[SlideStyles] = None) -> ResolvedSlideStyles:
        """Merge sparse *overrides* over the theme defaults (no font checks)."""
        overrides = overrides or SlideStyles()
        per_class: Dict[str, Tuple[Optional[TextStyle], Optional[FontVariant]]] = {
            'h1': (overrides.headings.get('h1'), overrides.fonts.get('h1')),
            'h2': (overrides.headings.get('h2'), overrides.fonts.get('h2')),
            'h3': (overrides.headings.get('h3'), overrides.fonts.get('h3')),
            'h4': (overrides.headings.get('h4'), overrides.fonts.get('h4')),
            'paragraph': (overrides.paragraphs, overrides.fonts.get('body')),
            'bullet': (overrides.bullets, overrides.fonts.get('bullets')),
            'code': (overrides.code, overrides.fonts.get('code')),
        }
        return ResolvedSlideStyles(**{
            name: self._resolve_text_style(name, style, variant)
            for name, (style, variant) in per_class.items()
        })

    def resolve_available(self, overrides: Optional[SlideStyles],
                          available: Iterable[Tuple[str, str]]) -> ResolvedSlideStyles:
        """Resolve and apply font fallbacks against a known availability set."""
        return apply_font_fallbacks(self.resolve(overrides), set(available), self.fallback_family)

    async def resolve_with_fonts(self, overrides: Optional[SlideStyles], font_cache) -> ResolvedSlideStyles:
        """Resolve, load every requested font through *font_cache*, then fall back."""
        styles = self.resolve(overrides)
        # The fallback family has to be loaded too before text can use it
        pairs = collect_font_names(styles) + ResolvedFont(self.fallback_family).pairs()
        available = await font_cache.ensure(pairs)
        resolved = apply_font_fallbacks(styles, available, self.fallback_family)
        for name, style in resolved.items():
            if style.font.family != getattr(styles, name).font.family:
                logger.info(f"Font {getattr(styles, name).font.family!r} unavailable for {name}, "
                            f"using {style.font.family!r}")
        return resolved
