"""Rule entries and rule sets owned by collection-valued resources such as route tables."""

from enum import Enum
from typing import Iterable, Iterator, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

RULES_ATTRIBUTE = "rules"
ALL_IPV4_CIDR = "0.0.0.0/0"


class RuleDestinationType(str, Enum):
    """How a rule's destination is expressed."""

    CIDR_BLOCK = "cidr_block"
    IPV6_CIDR_BLOCK = "ipv6_cidr_block"
    PREFIX_LIST = "prefix_list"


class RuleKey(NamedTuple):
    """Composite identity of a rule within its parent's rule set."""

    destination_type: RuleDestinationType
    destination: str
    target_id: str


class RuleEntry(BaseModel):
    """A single member of a rule set, for example one route in a route table."""

    model_config = ConfigDict(frozen=True)

    destination_type: RuleDestinationType = RuleDestinationType.CIDR_BLOCK
    destination: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    description: Optional[str] = None

    @property
    def key(self) -> RuleKey:
        return RuleKey(self.destination_type, self.destination, self.target_id)


class RuleSet:
    """Ordered collection of rule entries, unique on ``RuleEntry.key``.

    Construction keeps the first entry for any duplicated key. ``add`` and
    ``remove`` return new sets; a ``RuleSet`` is never modified in place.
    """

    __slots__ = ("_entries", "_index")

    def __init__(self, entries: Iterable[RuleEntry] = ()) -> None:
        unique: list[RuleEntry] = []
        index: dict[RuleKey, RuleEntry] = {}
        for entry in entries:
            if entry.key in index:
                continue
            index[entry.key] = entry
            unique.append(entry)
        self._entries = tuple(unique)
        self._index = index

    @property
    def entries(self) -> tuple[RuleEntry, ...]:
        return self._entries

    def find(self, key: RuleKey) -> Optional[RuleEntry]:
        return self._index.get(key)

    def add(self, entry: RuleEntry) -> "RuleSet":
        if entry.key in self._index:
            return self
        return RuleSet(self._entries + (entry,))

    def remove(self, key: RuleKey) -> "RuleSet":
        if key not in self._index:
            return self
        return RuleSet(e for e in self._entries if e.key != key)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __iter__(self) -> Iterator[RuleEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleSet):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"RuleSet({list(self._entries)!r})"
