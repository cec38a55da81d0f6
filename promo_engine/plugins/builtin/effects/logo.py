from typing import Optional

from ....domain.models.graph import Filter, FilterChain
from ....domain.models.layout import OverlayPlacement


class LogoEffect:
    """Logo image composited at its computed placement."""

    def __init__(
        self,
        placement: OverlayPlacement,
        opacity: float = 1.0,
        window: Optional[tuple[float, float]] = None,
    ):
        self.placement = placement
        self.opacity = opacity
        self.window = window

    def build_chains(
        self, input_label: str, logo_label: str, output_label: str
    ) -> tuple[FilterChain, ...]:
        scaled_label = f"{output_label}_logo"
        prepare = [
            Filter.of("scale", self.placement.width, self.placement.height),
            Filter.of("format", "rgba"),
        ]
        if self.opacity != 1.0:
            prepare.append(Filter.of("colorchannelmixer", aa=float(self.opacity)))

        overlay_args = {"x": self.placement.x, "y": self.placement.y}
        if self.window is not None:
            start, end = self.window
            overlay_args["enable"] = f"'between(t,{start:g},{end:g})'"

        return (
            FilterChain((logo_label,), tuple(prepare), (scaled_label,)),
            FilterChain(
                (input_label, scaled_label),
                (Filter.of("overlay", **overlay_args),),
                (output_label,),
            ),
        )
