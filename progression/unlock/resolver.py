"""
Unlock resolver.

Pure decision function mapping a catalog node's unlock policy and a learner's
progress snapshot to unlocked/locked. No I/O and no shared state, so it is safe
to call from any number of threads.

Policies (closed set):
- Free: always unlocked
- XPThreshold(value): unlocked iff total XP >= value (missing value counts as 0)
- Prerequisite(prerequisite_id): unlocked iff every page of the prerequisite
  node is completed; no prerequisite means unlocked
- Sequential: unlocked iff the sibling at sort_order - 1 is absent or has every
  page completed

Anything else parses to UnknownPolicy and resolves locked.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Union

# ========================================
# Policy variants
# ========================================


@dataclass(frozen=True)
class Free:
    pass


@dataclass(frozen=True)
class XPThreshold:
    value: int = 0


@dataclass(frozen=True)
class Prerequisite:
    prerequisite_id: str | None = None


@dataclass(frozen=True)
class Sequential:
    pass


@dataclass(frozen=True)
class UnknownPolicy:
    raw: str | None = None


UnlockPolicy = Union[Free, XPThreshold, Prerequisite, Sequential, UnknownPolicy]


def parse_policy(
    policy: str | None,
    unlock_value: int | None = None,
    prerequisite_id: str | None = None,
) -> UnlockPolicy:
    """Convert stored policy columns into a policy variant."""
    if policy == "free":
        return Free()
    if policy == "xp_threshold":
        return XPThreshold(value=unlock_value or 0)
    if policy == "prerequisite":
        return Prerequisite(prerequisite_id=prerequisite_id)
    if policy == "sequential":
        return Sequential()
    return UnknownPolicy(raw=policy)


# ========================================
# Inputs
# ========================================


@dataclass(frozen=True)
class UnlockNode:
    """A topic or module as seen by the resolver."""

    id: str
    policy: UnlockPolicy
    # Sibling at sort_order - 1 in the same parent, None for the first sibling
    previous_sibling_id: str | None = None


@dataclass(frozen=True)
class UserSnapshot:
    """
    The part of a learner's history an unlock decision depends on.

    Attributes:
        total_xp: Learner's XP total
        completed_page_ids: Pages the learner has completed
        pages_by_node: Page ids of every node the decision looks at
            (prerequisite node or previous sibling). A node with no pages maps
            to an empty set.
    """

    total_xp: int = 0
    completed_page_ids: frozenset[str] = field(default_factory=frozenset)
    pages_by_node: Mapping[str, frozenset[str]] = field(default_factory=dict)

    def node_completed(self, node_id: str) -> bool:
        """True when every page of node_id is completed. Unknown nodes are not."""
        if node_id not in self.pages_by_node:
            return False
        return self.pages_by_node[node_id] <= self.completed_page_ids


def dependency_ids(node: UnlockNode) -> list[str]:
    """Node ids whose pages must be present in the snapshot to decide `node`."""
    policy = node.policy
    if isinstance(policy, Prerequisite) and policy.prerequisite_id:
        return [policy.prerequisite_id]
    if isinstance(policy, Sequential) and node.previous_sibling_id:
        return [node.previous_sibling_id]
    return []


# ========================================
# Evaluation
# ========================================


def _eval_free(node: UnlockNode, snapshot: UserSnapshot) -> bool:
    return True


def _eval_xp_threshold(node: UnlockNode, snapshot: UserSnapshot) -> bool:
    return snapshot.total_xp >= node.policy.value


def _eval_prerequisite(node: UnlockNode, snapshot: UserSnapshot) -> bool:
    prerequisite_id = node.policy.prerequisite_id
    if not prerequisite_id:
        return True
    return snapshot.node_completed(prerequisite_id)


def _eval_sequential(node: UnlockNode, snapshot: UserSnapshot) -> bool:
    if node.previous_sibling_id is None:
        return True
    return snapshot.node_completed(node.previous_sibling_id)


_EVALUATORS: dict[type, Callable[[UnlockNode, UserSnapshot], bool]] = {
    Free: _eval_free,
    XPThreshold: _eval_xp_threshold,
    Prerequisite: _eval_prerequisite,
    Sequential: _eval_sequential,
}


def is_unlocked(node: UnlockNode, snapshot: UserSnapshot) -> bool:
    """Decide whether `node` is unlocked for the learner described by `snapshot`."""
    evaluator = _EVALUATORS.get(type(node.policy))
    if evaluator is None:
        return False
    return evaluator(node, snapshot)
