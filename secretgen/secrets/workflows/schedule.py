"""Order generated secrets so that dependencies come first."""
from typing import Dict, List

from ..domains.errors import CyclicDependency, UnresolvableDependency
from ..domains.models import SecretEntry

_IN_PROGRESS = 1
_DONE = 2


def order_entries(entries: Dict[str, SecretEntry]) -> List[SecretEntry]:
    """
    Return entries in dependency order.

    Depth-first post-order over the entries in encounter order, so
    independent entries keep their relative order. The walk keeps its own
    stack, so chain length is not bounded by the interpreter's recursion limit.

    Raises:
        CyclicDependency: If an entry depends on itself, directly or transitively
        UnresolvableDependency: If a dependency is not a generated secret
    """
    state: Dict[str, int] = {}
    ordered: List[SecretEntry] = []

    for start in entries:
        if state.get(start) == _DONE:
            continue

        state[start] = _IN_PROGRESS
        trail = [start]
        pending = [iter(entries[start].dependency_paths)]
        while pending:
            path = next(pending[-1], None)
            if path is None:
                pending.pop()
                done = trail.pop()
                state[done] = _DONE
                ordered.append(entries[done])
                continue

            mark = state.get(path)
            if mark == _DONE:
                continue
            if mark == _IN_PROGRESS:
                raise CyclicDependency(trail[trail.index(path):] + [path])

            entry = entries.get(path)
            if entry is None:
                raise UnresolvableDependency(
                    f"{trail[-1]} depends on {path}, which is not a generated secret."
                )

            state[path] = _IN_PROGRESS
            trail.append(path)
            pending.append(iter(entry.dependency_paths))
    return ordered
