from .base import Transition


class SlideUpTransition(Transition):
    name = "slideup"
    xfade = "slideup"
