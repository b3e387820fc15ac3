"""Unlock policy resolution."""

from progression.unlock.resolver import (
    Free,
    Prerequisite,
    Sequential,
    UnknownPolicy,
    UnlockNode,
    UnlockPolicy,
    UserSnapshot,
    XPThreshold,
    dependency_ids,
    is_unlocked,
    parse_policy,
)

__all__ = [
    "Free",
    "XPThreshold",
    "Prerequisite",
    "Sequential",
    "UnknownPolicy",
    "UnlockPolicy",
    "UnlockNode",
    "UserSnapshot",
    "dependency_ids",
    "is_unlocked",
    "parse_policy",
]
