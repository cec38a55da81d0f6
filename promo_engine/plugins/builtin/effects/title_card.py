import re

from ....domain.models.composition import TextCard
from ....domain.models.graph import Filter, FilterChain, MediaInput, format_value
from ....domain.models.layout import SafeZone, SizingResult

LINE_SPACING = 1.5

_OPTION_SPECIAL = re.compile(r"([\\':])")
_GRAPH_SPECIAL = re.compile(r"([\\'\[\],;])")


def escape_text(text: str) -> str:
    """Escape a drawtext value for the option parser, then for the filtergraph parser."""
    value = " ".join(str(text).split())
    value = _OPTION_SPECIAL.sub(r"\\\1", value)
    return _GRAPH_SPECIAL.sub(r"\\\1", value)


def line_positions(font_sizes, zone: SafeZone) -> list[int]:
    """Top y of each text line, the block centered vertically in the safe zone."""
    heights = [round(size * LINE_SPACING) for size in font_sizes]
    top = zone.top + max((zone.height - sum(heights)) // 2, 0)
    positions = []
    for size, height in zip(font_sizes, heights):
        positions.append(top + (height - size) // 2)
        top += height
    return positions


class TitleCardEffect:
    """Text lines drawn over a solid color source, sized for the platform."""

    def __init__(self, card: TextCard, sizing: SizingResult, fps: int = 30):
        self.card = card
        self.sizing = sizing
        self.fps = fps

    @property
    def font_sizes(self) -> list[int]:
        title = self.sizing.text_sizes["title"]
        subtitle = self.sizing.text_sizes["subtitle"]
        return [title if i == 0 else subtitle for i in range(len(self.card.lines))]

    def source(self) -> MediaInput:
        width, height = self.sizing.frame
        source = (
            f"color=c={self.card.background}:s={width}x{height}"
            f":r={self.fps}:d={format_value(float(self.card.duration))}"
        )
        return MediaInput(source, "lavfi", ("-f", "lavfi"))

    def build_chain(self, input_label: str, output_label: str) -> FilterChain:
        zone = self.sizing.safe_zone
        sizes = self.font_sizes
        filters = []
        for line, size, y in zip(self.card.lines, sizes, line_positions(sizes, zone)):
            args = {}
            if self.card.font_file:
                args["fontfile"] = escape_text(self.card.font_file)
            args.update(
                text=escape_text(line),
                expansion="none",
                fontsize=size,
                fontcolor=self.card.font_color,
                x=f"'max({zone.left},(w-text_w)/2)'",
                y=y,
            )
            filters.append(Filter.of("drawtext", **args))

        filters.extend(
            (
                Filter.of("setsar", 1),
                Filter.of("fps", self.fps),
                Filter.of("format", "yuv420p"),
                Filter.of("trim", duration=float(self.card.duration)),
                Filter.of("setpts", "PTS-STARTPTS"),
            )
        )
        return FilterChain((input_label,), tuple(filters), (output_label,))
