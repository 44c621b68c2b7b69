"""
Color palettes for dashboard specifications and Power BI theme files.
"""

import re

DEFAULT_PALETTE = "corporate"

COLOR_PALETTES = {
    "corporate": {
        "name": "Corporate Blue",
        "colors": ["#0078D4", "#106EBE", "#005A9E", "#004578", "#003152"],
    },
    "vibrant": {
        "name": "Vibrant Mix",
        "colors": ["#FF6B6B", "#4ECDC4", "#45B7D1", "#FFA07A", "#98D8C8"],
    },
    "earthy": {
        "name": "Earthy Tones",
        "colors": ["#8B7355", "#A0826D", "#B8927D", "#C9A88B", "#D8BF99"],
    },
    "modern": {
        "name": "Modern Purple",
        "colors": ["#6C5CE7", "#A29BFE", "#5F27CD", "#341F97", "#8395A7"],
    },
    "sunset": {
        "name": "Sunset",
        "colors": ["#FD7272", "#F9CA24", "#F0932B", "#EB4D4B", "#6C5CE7"],
    },
    "ocean": {
        "name": "Ocean Blue",
        "colors": ["#0984E3", "#74B9FF", "#0652DD", "#1E3799", "#3C6382"],
    },
    "forest": {
        "name": "Forest Green",
        "colors": ["#00B894", "#55EFC4", "#00856F", "#05C46B", "#0BE881"],
    },
    "berry": {
        "name": "Berry",
        "colors": ["#E056FD", "#C44569", "#F8B500", "#E17055", "#FDA7DF"],
    },
    "monochrome": {
        "name": "Monochrome",
        "colors": ["#2C3E50", "#34495E", "#7F8C8D", "#95A5A6", "#BDC3C7"],
    },
    "pastel": {
        "name": "Pastel Dreams",
        "colors": ["#A8E6CF", "#FFD3B6", "#FFAAA5", "#FF8B94", "#C7CEEA"],
    },
}

_HEX_RE = re.compile(r"^#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})$", re.IGNORECASE)


def get_color_palette(name):
    """Return the palette dict for name, or the corporate palette."""
    return COLOR_PALETTES.get(name) or COLOR_PALETTES[DEFAULT_PALETTE]


def generate_color_palette(brand_color):
    """Derive five shades from a single brand hex color."""
    m = _HEX_RE.match((brand_color or "").strip())
    if not m:
        return list(COLOR_PALETTES[DEFAULT_PALETTE]["colors"])

    r, g, b = (int(part, 16) for part in m.groups())

    def shade(delta):
        return "#{:02X}{:02X}{:02X}".format(
            max(0, min(255, r + delta)),
            max(0, min(255, g + delta)),
            max(0, min(255, b + delta)),
        )

    base = "#{:02X}{:02X}{:02X}".format(r, g, b)
    return [base, shade(30), shade(-30), shade(-60), shade(-90)]


def palette_colors(spec):
    """Colors a specification renders with (custom colors win)."""
    custom = spec.get("customColors") if spec else None
    if custom:
        return list(custom)
    return list(get_color_palette((spec or {}).get("colorPalette")).get("colors"))


def build_powerbi_theme(palette_name, custom_colors=None,
                        background="#FFFFFF", foreground="#252423"):
    """Power BI report theme JSON for a palette."""
    palette = get_color_palette(palette_name)
    colors = list(custom_colors) if custom_colors else list(palette["colors"])
    name = "Custom" if custom_colors else palette["name"]
    return {
        "name": name,
        "dataColors": colors,
        "background": background,
        "foreground": foreground,
        "tableAccent": colors[0],
        "textClasses": {
            "label": {"color": "#6B7280"},
            "title": {"color": foreground},
        },
    }
