from __future__ import annotations

from hireflow.core.events import CollaborationHub

_HUB: CollaborationHub | None = None


def get_hub() -> CollaborationHub:
    global _HUB
    if _HUB is None:
        _HUB = CollaborationHub()
    return _HUB


def reset_hub() -> None:
    global _HUB
    _HUB = None
