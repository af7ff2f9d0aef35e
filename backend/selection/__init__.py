from .resolver import NEXT_IN_RING, ClickCandidates, close_panel, collect_candidates, find_nearest_record, resolve_click
from .state import FocusType, SelectionState

__all__ = [
    "NEXT_IN_RING",
    "ClickCandidates",
    "FocusType",
    "SelectionState",
    "close_panel",
    "collect_candidates",
    "find_nearest_record",
    "resolve_click",
]
