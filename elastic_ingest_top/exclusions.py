"""User-controlled set of index names left out of the aggregate and the table."""

from typing import Iterable, Iterator, List, Set


class ExclusionSet:
    def __init__(self, names: Iterable[str] = ()):
        self._names: Set[str] = set(names)

    def exclude(self, name: str) -> None:
        self._names.add(name)

    def include(self, name: str) -> None:
        self._names.discard(name)

    def toggle(self, name: str) -> bool:
        """Flip membership of ``name``. Returns True when it is now excluded."""
        if name in self._names:
            self._names.discard(name)
            return False
        self._names.add(name)
        return True

    def clear(self) -> None:
        self._names.clear()

    def retain(self, live_names: Set[str]) -> List[str]:
        """Drop entries for indices that no longer exist. Returns the dropped names."""
        dropped = sorted(self._names - live_names)
        self._names.intersection_update(live_names)
        return dropped

    def names(self) -> List[str]:
        return sorted(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._names))
