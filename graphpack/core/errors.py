from typing import Any


class GraphPackError(Exception):
    """
    Base class for every failure raised by a top-level encode or decode call.

    A call either fully produces/consumes a value or fails as a whole:
    partially populated reference slots are never exposed to the caller.
    """


class UnregisteredType(GraphPackError, TypeError):
    """
    Raised when a value's type was never registered and the registry
    requires class registration.
    """
    def __init__(self, cls: type) -> None:
        super().__init__(
            f"Type {cls.__module__}.{cls.__qualname__} is not registered "
            "and class registration is required"
        )
        self.cls = cls


class UnknownTypeTag(GraphPackError, LookupError):
    """
    Raised on decode when a type tag or id has no binding in the local
    registry. The sender may know a richer type set than the receiver,
    so this is reported rather than treated as corruption.
    """
    def __init__(self, tag: str | int) -> None:
        super().__init__(f"No serializer bound to type tag {tag!r}")
        self.tag = tag


class DuplicateRegistration(GraphPackError, ValueError):
    def __init__(self, message: str, cls: type | None = None, tag: str | int | None = None) -> None:
        super().__init__(message)
        self.cls = cls
        self.tag = tag


class ForwardReferenceViolation(GraphPackError, ValueError):
    """
    Raised when a back-reference points at a slot that was never reserved,
    or at a slot whose value cannot exist yet (e.g. a tuple still being
    decoded).
    """
    def __init__(self, slot: int) -> None:
        super().__init__(f"Back-reference to unpopulated slot {slot}")
        self.slot = slot


class SubstitutionFailure(GraphPackError):
    def __init__(self, cls: type, direction: str) -> None:
        super().__init__(
            f"Substitution hook {direction!r} of "
            f"{cls.__module__}.{cls.__qualname__} failed"
        )
        self.cls = cls
        self.direction = direction


class TruncatedInput(GraphPackError, ValueError):
    def __init__(self, needed: int, remaining: int) -> None:
        super().__init__(
            f"Input truncated: needed {needed} bytes, {remaining} remaining"
        )
        self.needed = needed
        self.remaining = remaining


class UnsupportedElementKind(GraphPackError, ValueError):
    def __init__(self, kind: Any) -> None:
        super().__init__(f"Unsupported typed array element kind: {kind!r}")
        self.kind = kind


class DepthLimitExceeded(GraphPackError):
    def __init__(self, max_depth: int) -> None:
        super().__init__(f"Object graph nesting exceeds max depth {max_depth}")
        self.max_depth = max_depth


class MalformedInput(GraphPackError, ValueError):
    """Corrupt marker, header, varint or UTF-8 sequence."""


class ConfigurationError(GraphPackError):
    """Settings could not be loaded or failed validation."""


class UnsupportedType(GraphPackError, TypeError):
    """
    Raised when no structural serializer can be derived for a class: its
    state lives in a built-in or extension base that exposes no fields.
    Such classes need an explicit serializer or substitution hooks.
    """
    def __init__(self, cls: type) -> None:
        super().__init__(
            f"Type {cls.__module__}.{cls.__qualname__} has no structural form; "
            "register a serializer or substitution hooks for it"
        )
        self.cls = cls


class InstanceStateFailure(GraphPackError):
    """
    Raised when an instance cannot be rebuilt or its state cannot be read:
    construction, __getstate__/__setstate__ or attribute assignment failed.
    """
    def __init__(self, cls: type, operation: str) -> None:
        super().__init__(
            f"Could not {operation} instance of {cls.__module__}.{cls.__qualname__}"
        )
        self.cls = cls
        self.operation = operation
