"""Deterministic member ordering for merged types.

Data members come before behavior members, everything else last. Within
a group static members precede instance members, and public precedes
protected precedes the rest (package-private and private rank together).
"""

from typing import List, Tuple

from ..java_tree.models import Node
from ..java_tree.syntax import BEHAVIOR, DATA, keywords, member_kind

_GROUP_RANK = {DATA: 1, BEHAVIOR: 2}
_OTHER_RANK = 9

_VISIBILITY_RANK = {"public": 0, "protected": 1}
_DEFAULT_VISIBILITY_RANK = 2


def member_rank(member: Node) -> Tuple[int, int, int]:
    group = _GROUP_RANK.get(member_kind(member))
    if group is None:
        return (_OTHER_RANK, 0, 0)

    kws = keywords(member)
    static_rank = 0 if "static" in kws else 1
    visibility = _DEFAULT_VISIBILITY_RANK
    for kw in kws:
        if kw in _VISIBILITY_RANK:
            visibility = _VISIBILITY_RANK[kw]
            break
    return (group, static_rank, visibility)


def order_members(members: List[Node]) -> List[Node]:
    """Stable sort; ties keep their relative order."""
    return sorted(members, key=member_rank)
