from dataclasses import dataclass
from typing import Any

from graphpack.core.errors import ForwardReferenceViolation


@dataclass(frozen=True, slots=True)
class Sighting:
    slot: int
    first_seen: bool


class ReferenceWriter:
    """
    Encode-side identity table for one top-level call.

    Identity is reference equality (id()), never structural equality: two
    equal but distinct objects get two slots, one object reached through
    two paths gets one slot and a back-reference. Every tracked object is
    kept alive until the call ends so that an id cannot be recycled by a
    temporary (substitutes are often temporaries) and alias a new object.
    """
    def __init__(self) -> None:
        self._slots: dict[int, int] = {}
        self._objects: list[Any] = []

    def __len__(self) -> int:
        return len(self._objects)

    def track(self, value: Any) -> Sighting:
        """
        Look up `value`; on first sight reserve the next slot for it.

        The slot is reserved before the caller encodes the payload, so a
        cycle that re-enters `value` while it is being written sees a
        repeat instead of recursing.
        """
        key = id(value)
        slot = self._slots.get(key)
        if slot is not None:
            return Sighting(slot, first_seen=False)

        slot = len(self._objects)
        self._slots[key] = slot
        self._objects.append(value)
        return Sighting(slot, first_seen=True)


class _Pending:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<pending>"


PENDING = _Pending()


class ReferenceReader:
    """
    Decode-side slot arena for one top-level call.

    Slots are populated in two phases: reserve() when a NEW_VALUE marker is
    consumed, then populate() once an instance exists. Composite serializers
    populate early (an empty list, a struct instance without fields) so
    that back-references issued while their payload is still decoding
    resolve to them. The arena is the single source of truth for what
    reference N means at any point of the decode.

    A slot whose value is replaced by a substitute may be forwarded to the
    substitute's slot for the duration of the substitute's decode.
    """
    def __init__(self) -> None:
        self._slots: list[Any] = []
        self._forwards: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def next_slot(self) -> int:
        return len(self._slots)

    def reserve(self) -> int:
        self._slots.append(PENDING)
        return len(self._slots) - 1

    def populate(self, slot: int, value: Any) -> None:
        self._slots[slot] = value

    def forward(self, slot: int, target: int) -> None:
        self._forwards[slot] = target

    def release_forward(self, slot: int) -> None:
        self._forwards.pop(slot, None)

    def get(self, slot: int) -> Any:
        if slot >= len(self._slots):
            raise ForwardReferenceViolation(slot)

        value = self._slots[slot]
        seen: set[int] = set()
        while value is PENDING:
            target = self._forwards.get(slot)
            if target is None or target in seen or target >= len(self._slots):
                raise ForwardReferenceViolation(slot)
            seen.add(target)
            slot = target
            value = self._slots[slot]
        return value
