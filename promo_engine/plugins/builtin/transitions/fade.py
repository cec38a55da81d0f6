from .base import Transition


class FadeTransition(Transition):
    name = "fade"
    xfade = "fade"
