from .base import Transition


class ZoomInTransition(Transition):
    name = "zoomin"
    xfade = "zoomin"
