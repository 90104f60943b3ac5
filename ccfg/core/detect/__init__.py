from .tags import RULES, Tag, parse_tag
from .detector import Detection, detect, detect_has, detect_ordered, detect_summary, trigger_for

__all__ = [
    "RULES",
    "Tag",
    "parse_tag",
    "Detection",
    "detect",
    "detect_has",
    "detect_ordered",
    "detect_summary",
    "trigger_for",
]
