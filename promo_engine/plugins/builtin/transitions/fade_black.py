from .base import Transition


class FadeBlackTransition(Transition):
    name = "fadeblack"
    xfade = "fadeblack"
