from enum import IntEnum, IntFlag


class RefFlag(IntEnum):
    """
    One signed byte written before every value.

    NULL and VALUE are never reference-tracked; NEW_VALUE reserves the
    next slot in first-encounter order; REF is followed by a varuint slot.
    """
    NULL = -3
    REF = -2
    VALUE = -1
    NEW_VALUE = 0


class HeaderFlag(IntFlag):
    NONE = 0
    REF_TRACKING = 0x01
    NAMED_TAGS = 0x02


class SubstitutionMarker(IntEnum):
    SAME = 0
    REPLACED = 1


# Registered-id mode escape: a length-prefixed type name follows.
NAMED_TYPE_ID = 0


class ObjectLayout(IntEnum):
    """Payload shape of a structural object, written before its fields."""
    FIELDS = 0
    STATE = 1
