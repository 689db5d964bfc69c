"""
CSS utilities for reading theme defaults.

Themes are small CSS files; the values the synchronizer needs (font sizes,
colors, font families, slide size, named fills) are pulled out with regular
expressions and cached per parser instance.
"""
import re
from typing import Any, Dict, NamedTuple, Optional

from .theme_loader import get_css


class RGBA(NamedTuple):
    """Color with 0-255 channels and a 0-1 alpha."""
    r: int
    g: int
    b: int
    a: float = 1.0

    @property
    def rgb(self):
        return (self.r, self.g, self.b)


_HEX_RE = re.compile(r'^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$')
_RGB_RE = re.compile(r'^rgba?\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*(?:,\s*([\d.]+)\s*)?\)$', re.IGNORECASE)


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    """
    Parse ``#rgb``, ``#rrggbb``, ``#rrggbbaa``, ``rgb()`` or ``rgba()``.

    Returns None for anything else (named colors included).
    """
    if not value:
        return None
    value = value.strip()

    hex_match = _HEX_RE.match(value)
    if hex_match:
        hexval = hex_match.group(1)
        if len(hexval) == 3:
            hexval = ''.join(c * 2 for c in hexval)
        alpha = 1.0
        if len(hexval) == 8:
            alpha = int(hexval[6:8], 16) / 255
        return RGBA(*(int(hexval[i:i + 2], 16) for i in (0, 2, 4)), a=alpha)

    rgb_match = _RGB_RE.match(value)
    if rgb_match:
        channels = [min(255, int(rgb_match.group(i))) for i in range(1, 4)]
        alpha = float(rgb_match.group(4)) if rgb_match.group(4) is not None else 1.0
        return RGBA(*channels, a=max(0.0, min(1.0, alpha)))

    return None


class CSSParser:
    """Theme CSS accessor. Every getter caches its result."""

    def __init__(self, theme: str = "default"):
        self.theme = theme
        self.css_content = get_css(theme)
        self._css_vars = None
        self._font_sizes = None
        self._colors = None

    def get_css_variables(self) -> Dict[str, str]:
        """Extract all CSS variables from the :root section."""
        if self._css_vars is not None:
            return self._css_vars

        root_match = re.search(r':root\s*\{([^}]+)\}', self.css_content, re.DOTALL)
        if not root_match:
            raise ValueError(f"No :root section found in theme '{self.theme}'")

        css_vars = re.findall(r'--([^:]+):\s*([^;]+);', root_match.group(1))
        self._css_vars = {name.strip(): value.strip() for name, value in css_vars}
        return self._css_vars

    def get_raw_value(self, variable_name: str) -> str:
        """Get raw CSS variable value."""
        value = self.get_css_variables().get(variable_name)
        if not value:
            raise ValueError(f"CSS variable '--{variable_name}' not found in theme '{self.theme}'")
        return value

    def get_px_value(self, variable_name: str) -> int:
        """Get pixel value from CSS variable."""
        value = self.get_raw_value(variable_name)
        px_match = re.search(r'(-?\d+)px', value)
        if not px_match:
            raise ValueError(f"CSS variable '--{variable_name}' is not a pixel value: {value}")
        return int(px_match.group(1))

    def get_font_family(self, variable_name: str = 'slide-font-family') -> str:
        """Font family from a quoted CSS variable such as ``--slide-font-family``."""
        return self.get_raw_value(variable_name).strip('\'"')

    def get_font_sizes(self) -> Dict[str, float]:
        """Extract font sizes per element; 1 px is treated as 1 pt like PowerPoint does."""
        if self._font_sizes is not None:
            return self._font_sizes

        font_size_patterns = {
            'h1': r'h1\s*{[^}]*font-size:\s*(\d+)px',
            'h2': r'h2\s*{[^}]*font-size:\s*(\d+)px',
            'h3': r'h3\s*{[^}]*font-size:\s*(\d+)px',
            'h4': r'h4\s*{[^}]*font-size:\s*(\d+)px',
            'p': r'(?<![\w-])p\s*{[^}]*font-size:\s*(\d+)px',
            'li': r'ul,\s*ol\s*{[^}]*font-size:\s*(\d+)px',
            'code': r'pre\s*{[^}]*font-size:\s*(\d+)px',
        }

        font_sizes = {}
        for element, pattern in font_size_patterns.items():
            match = re.search(pattern, self.css_content, re.IGNORECASE | re.DOTALL)
            if not match:
                raise ValueError(f"❌ CSS theme '{self.theme}' missing required font-size for {element}")
            # Round to nearest 0.5pt
            font_sizes[element] = round(int(match.group(1)) * 2) / 2

        self._font_sizes = font_sizes
        return font_sizes

    def get_line_height(self) -> float:
        """Extract line-height from CSS."""
        line_height_match = re.search(r'line-height:\s*([\d.]+)', self.css_content)
        if not line_height_match:
            raise ValueError(f"❌ CSS theme '{self.theme}' missing line-height")
        return float(line_height_match.group(1))

    def get_colors(self) -> Dict[str, str]:
        """Extract the theme's element colors."""
        if self._colors is not None:
            return self._colors

        color_patterns = {
            'text': [r'body\s*{[^}]*?(?<!background-)color:\s*([^;}\s]+)'],
            'background': [r'body\s*{[^}]*background-color:\s*([^;}\s]+)'],
            'heading_text': [r'h[1-6]\s*{[^}]*?(?<!background-)color:\s*([^;}\s]+)'],
            'code_text': [r'pre\s*{[^}]*?(?<!background-)color:\s*([^;}\s]+)'],
            'code_background': [r'pre\s*{[^}]*background-color:\s*([^;}\s]+)'],
            'link': [r'(?<![\w-])a\s*{[^}]*?(?<!background-)color:\s*([^;}\s]+)'],
            'quote_text': [r'blockquote\s*{[^}]*?(?<![\w-])color:\s*([^;}\s]+)'],
            'quote_bar': [r'blockquote\s*{[^}]*border-color:\s*([^;}\s]+)'],
            'table_border': [r'th,?\s*td\s*{[^}]*border:[^}]*solid\s+([^;}\s]+)'],
            'slide_number': [r'\.slide-number\s*{[^}]*?(?<!background-)color:\s*([^;}\s]+)'],
        }

        colors = {}
        for color_type, patterns in color_patterns.items():
            for pattern in patterns:
                match = re.search(pattern, self.css_content, re.IGNORECASE | re.DOTALL)
                if match:
                    color_value = match.group(1).strip()
                    if color_value not in ['transparent', 'inherit']:
                        colors[color_type] = color_value
                        break

        self._colors = colors
        return colors

    def get_color_value(self, selector_pattern: str, property_name: str = 'color') -> Optional[str]:
        """Extract a property value from the first rule matching *selector_pattern*."""
        pattern = rf'{selector_pattern}\s*{{[^}}]*?(?<![\w-]){property_name}:\s*([^;}}]+)'
        match = re.search(pattern, self.css_content, re.IGNORECASE | re.DOTALL)
        return match.group(1).strip() if match else None

    def get_named_fill(self, class_name: str) -> Optional[RGBA]:
        """Background color of the ``.class_name`` rule, used for named fill styles."""
        if not re.fullmatch(r'[A-Za-z0-9_-]+', class_name):
            return None
        value = self.get_color_value(rf'\.{re.escape(class_name)}(?![\w-])', 'background-color')
        return parse_color(value)

    def get_slide_dimensions(self) -> Dict[str, Any]:
        """Extract slide dimensions from CSS variables."""
        width_px = self.get_px_value('slide-width')
        height_px = self.get_px_value('slide-height')
        return {
            'width_px': width_px,
            'height_px': height_px,
            'padding_px': self.get_px_value('slide-padding'),
            'width_inches': width_px / 96,  # 96 DPI standard
            'height_inches': height_px / 96,
            'font_family': self.get_font_family(),
        }
