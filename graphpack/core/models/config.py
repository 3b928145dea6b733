from dataclasses import dataclass, replace
from enum import StrEnum


class TagMode(StrEnum):
    id = "id"
    named = "named"


@dataclass(frozen=True)
class CodecConfig:
    """
    Options consumed by a GraphCodec.

    This is the plain, validated form of GraphPackSettings: the core never
    reads the environment or configuration files itself.
    """
    ref_tracking: bool = True
    """
    Preserve object identity and cycles. Process-wide default; every
    serialize() call may override it.
    """

    require_registration: bool = True
    """
    Strict type resolution: encoding an unregistered type fails with
    UnregisteredType instead of falling back to a structural serializer.
    """

    tag_mode: TagMode = TagMode.named
    """
    How type descriptors are written: 4-byte registered ids (compact, both
    ends must register in agreement) or UTF-8 tags (self-describing).
    """

    max_depth: int = 128
    """
    Maximum nesting of values within one call before DepthLimitExceeded.
    """

    import_prefixes: tuple[str, ...] | None = None
    """
    Packages a permissive decoder may import to locate a class by its tag,
    submodules included. None allows any module.
    """

    def __post_init__(self) -> None:
        if self.max_depth <= 0:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    def with_overrides(self, ref_tracking: bool | None = None) -> "CodecConfig":
        if ref_tracking is None or ref_tracking == self.ref_tracking:
            return self
        return replace(self, ref_tracking=ref_tracking)
