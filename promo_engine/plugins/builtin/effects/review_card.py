from ....domain.models.graph import Filter, FilterChain
from ....domain.models.layout import OverlayPlacement

REVIEW_CARD_START = 5.0
REVIEW_CARD_END = 20.0
REVIEW_CARD_MIN_VISIBLE = 3.0


def review_card_window(duration: float) -> tuple[float, float]:
    """Visible interval of the review card for a video of `duration` seconds."""
    start = min(REVIEW_CARD_START, 0.2 * duration)
    end = min(REVIEW_CARD_END, max(0.3 * duration, start + REVIEW_CARD_MIN_VISIBLE), duration)
    return round(start, 3), round(end, 3)


class ReviewCardEffect:
    """Review card shown centered inside a time window."""

    def __init__(self, placement: OverlayPlacement, duration: float, opacity: float = 1.0):
        self.placement = placement
        self.opacity = opacity
        self.window = review_card_window(duration)

    def build_chains(
        self, input_label: str, card_label: str, output_label: str
    ) -> tuple[FilterChain, ...]:
        scaled_label = f"{output_label}_card"
        prepare = [
            Filter.of("scale", self.placement.width, self.placement.height),
            Filter.of("format", "rgba"),
        ]
        if self.opacity != 1.0:
            prepare.append(Filter.of("colorchannelmixer", aa=float(self.opacity)))

        start, end = self.window
        return (
            FilterChain((card_label,), tuple(prepare), (scaled_label,)),
            FilterChain(
                (input_label, scaled_label),
                (
                    Filter.of(
                        "overlay",
                        x=self.placement.x,
                        y=self.placement.y,
                        enable=f"'between(t,{start:g},{end:g})'",
                    ),
                ),
                (output_label,),
            ),
        )
