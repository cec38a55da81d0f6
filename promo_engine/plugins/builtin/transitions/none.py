from .base import Transition


class NoneTransition(Transition):
    # hard cut: clips are concatenated and the transition duration is ignored
    name = "none"
    xfade = None
