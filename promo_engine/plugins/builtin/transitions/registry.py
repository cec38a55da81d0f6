from ....infra.logging import get_logger
from .base import Transition
from .circleopen import CircleOpenTransition
from .fade import FadeTransition
from .fade_black import FadeBlackTransition
from .none import NoneTransition
from .slideup import SlideUpTransition
from .smoothleft import SmoothLeftTransition
from .zoomin import ZoomInTransition

TRANSITIONS = {
    "fade": FadeTransition(),
    "fadeblack": FadeBlackTransition(),
    "smoothleft": SmoothLeftTransition(),
    "slideup": SlideUpTransition(),
    "circleopen": CircleOpenTransition(),
    "zoomin": ZoomInTransition(),
    "none": NoneTransition(),
}

# template transition names mapped onto xfade transitions
ALIASES = {
    "cross_fade": "fade",
    "crossfade": "fade",
    "quick_cut": "fade",
    "smooth_fade": "fade",
    "smooth_cut": "fade",
    "professional_fade": "fade",
    "fade_black": "fadeblack",
    "vertical_slide": "slideup",
    "cut": "none",
}


def get_transition(name: str) -> Transition:
    key = (name or "fade").strip().lower()
    key = ALIASES.get(key, key)
    transition = TRANSITIONS.get(key)
    if transition is None:
        get_logger("Transitions").warning("Unknown transition '%s', using fade", name)
        return TRANSITIONS["fade"]
    return transition
