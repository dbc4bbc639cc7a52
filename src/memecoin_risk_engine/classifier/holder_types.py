"""Set-of-tags value type for holder classification."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum


class HolderTag(str, Enum):
    """Behavioural and distribution tags a holder can carry."""

    FRESH = "fresh"
    INCEPTION = "inception"
    SNIPER = "sniper"
    BUNDLER = "bundler"
    BUNDLED = "bundled"
    INSIDER = "insider"
    OTHER = "other"


# Canonical storage order.
_TAG_ORDER: tuple[HolderTag, ...] = tuple(HolderTag)

# Tags derived from on-chain behaviour; the remaining tags are defaults for
# holders none of the detectors resolved.
BEHAVIOURAL_TAGS: frozenset[HolderTag] = frozenset(
    {HolderTag.SNIPER, HolderTag.BUNDLER, HolderTag.BUNDLED, HolderTag.INSIDER}
)

_LEGACY_ALIASES = {"unknown": HolderTag.OTHER, "snipers": HolderTag.SNIPER, "insiders": HolderTag.INSIDER}


@dataclass(frozen=True)
class HolderTypes:
    """Immutable set of holder tags.

    Tags only ever accumulate: `union` returns a new value containing both
    operands, so re-running a detector is idempotent.
    """

    tags: frozenset[HolderTag] = frozenset()

    @classmethod
    def of(cls, *tags: HolderTag | str) -> HolderTypes:
        return cls(frozenset(HolderTag(t) for t in tags))

    @classmethod
    def parse(cls, raw: str | None) -> HolderTypes:
        """Parse the stored comma-joined form, tolerating legacy spellings."""
        if not raw:
            return cls()
        tags: set[HolderTag] = set()
        for part in raw.split(","):
            token = part.strip().lower()
            if not token:
                continue
            if token in _LEGACY_ALIASES:
                tags.add(_LEGACY_ALIASES[token])
                continue
            try:
                tags.add(HolderTag(token))
            except ValueError as e:
                raise ValueError(f"Unknown holder tag: {token!r}") from e
        return cls(frozenset(tags))

    def union(self, other: HolderTypes | Iterable[HolderTag | str]) -> HolderTypes:
        extra = other.tags if isinstance(other, HolderTypes) else frozenset(HolderTag(t) for t in other)
        if extra <= self.tags:
            return self
        return HolderTypes(self.tags | extra)

    def contains(self, tag: HolderTag | str) -> bool:
        return HolderTag(tag) in self.tags

    def __contains__(self, tag: object) -> bool:
        if isinstance(tag, (HolderTag, str)):
            try:
                return self.contains(tag)
            except ValueError:
                return False
        return False

    def __iter__(self) -> Iterator[HolderTag]:
        return (t for t in _TAG_ORDER if t in self.tags)

    def __len__(self) -> int:
        return len(self.tags)

    @property
    def is_resolved(self) -> bool:
        """True when at least one behavioural detector tagged the holder."""
        return bool(self.tags & BEHAVIOURAL_TAGS)

    def to_storage(self) -> str:
        return ",".join(t.value for t in self)

    def __str__(self) -> str:
        return self.to_storage()


def default_types(*, received_at_mint: bool, amount: float) -> HolderTypes:
    """Tag for a holder no behavioural rule resolved."""
    if amount <= 0:
        return HolderTypes.of(HolderTag.OTHER)
    if received_at_mint:
        return HolderTypes.of(HolderTag.INCEPTION)
    return HolderTypes.of(HolderTag.FRESH)
