import logging
from dataclasses import dataclass
from typing import Any, Callable

from graphpack.core.context import ReadContext, WriteContext
from graphpack.core.errors import (
    DepthLimitExceeded,
    GraphPackError,
    MalformedInput,
    TruncatedInput,
)
from graphpack.core.models.config import CodecConfig, TagMode
from graphpack.core.models.types import TypeDescriptor, TypeKind
from graphpack.core.ports.serializer import Serializer
from graphpack.core.resolver.registry import Registration, TypeRegistry
from graphpack.core.wire.markers import HeaderFlag

_KNOWN_FLAGS = int(HeaderFlag.REF_TRACKING | HeaderFlag.NAMED_TAGS)


@dataclass(frozen=True)
class BoundSerializer:
    """
    Serialize/deserialize pair bound to one root type, as returned by
    GraphCodec.register_serializer().
    """
    serializer: Serializer
    serialize: Callable[..., bytes]
    deserialize: Callable[[bytes | bytearray | memoryview], Any]


class GraphCodec:
    """
    Top-level driver: turns an object graph into bytes and back.

    Payload layout:

        +--------+------------------------------------+
        | flags  | root value (marker, type, payload) |
        +--------+------------------------------------+

    The flag byte records whether reference tracking was on and which
    type-tag mode was used, so deserialize() needs no out-of-band options.
    The whole input must be consumed by the root value.

    Each call builds its own WriteContext/ReadContext; a codec may be used
    from several threads once its registry is fully populated.
    """
    def __init__(
        self,
        registry: TypeRegistry | None = None,
        config: CodecConfig | None = None,
    ) -> None:
        self.config = config or CodecConfig()
        if registry is None:
            registry = TypeRegistry(
                require_registration=self.config.require_registration,
                import_prefixes=self.config.import_prefixes,
            )
        self.registry = registry
        self._logger = logging.getLogger("graphpack.codec")

    def register(
        self,
        cls: type,
        tag_or_id: str | int | None = None,
        serializer: Serializer | None = None,
    ) -> Registration:
        return self.registry.register(cls, tag_or_id, serializer)

    def register_substitution(
        self,
        cls: type,
        replace: Callable[[Any], Any] | None = None,
        resolve: Callable[[Any], Any] | None = None,
    ) -> None:
        self.registry.register_substitution(cls, replace=replace, resolve=resolve)

    def register_serializer(
        self,
        target: TypeDescriptor | type,
        serializer: Serializer | None = None,
    ) -> BoundSerializer:
        """
        Resolve (registering if needed) the serializer of a root type and
        return a serialize/deserialize pair that encodes with it.

        `target` is either a declarative TypeDescriptor built with `Type`
        or a runtime class.
        """
        if isinstance(target, TypeDescriptor):
            if serializer is not None:
                raise ValueError("A serializer cannot be supplied for a declarative descriptor")
            if target.kind is TypeKind.STRUCT:
                bound = self.registry.register_descriptor(target)
            else:
                bound = self.registry.resolve_by_descriptor(target)
        elif serializer is not None or not self.registry.is_registered(target):
            bound = self.registry.register(target, serializer=serializer).serializer
        else:
            bound = self.registry.resolve_by_type(target)

        def serialize(value: Any, *, ref_tracking: bool | None = None) -> bytes:
            return self.serialize(value, bound, ref_tracking=ref_tracking)

        return BoundSerializer(serializer=bound, serialize=serialize, deserialize=self.deserialize)

    def serialize(
        self,
        value: Any,
        serializer: Serializer | None = None,
        *,
        ref_tracking: bool | None = None,
    ) -> bytes:
        config = self.config.with_overrides(ref_tracking=ref_tracking)
        ctx = WriteContext(self.registry, config)

        flags = HeaderFlag.NONE
        if config.ref_tracking:
            flags |= HeaderFlag.REF_TRACKING
        if config.tag_mode is TagMode.named:
            flags |= HeaderFlag.NAMED_TAGS
        ctx.writer.write_uint8(flags)

        try:
            ctx.write_ref(value, serializer)
        except RecursionError:
            self._logger.debug("Encoding of %s overflowed the stack", type(value).__qualname__)
            raise DepthLimitExceeded(config.max_depth) from None
        except GraphPackError as ex:
            self._logger.debug("Encoding of %s failed: %s", type(value).__qualname__, ex)
            raise

        return ctx.getvalue()

    def deserialize(self, data: bytes | bytearray | memoryview) -> Any:
        view = memoryview(data).cast("B")
        if not view:
            raise TruncatedInput(1, 0)

        if view[0] & ~_KNOWN_FLAGS:
            raise MalformedInput(f"Unknown header flags 0x{view[0]:02x}")
        flags = HeaderFlag(view[0])

        ctx = ReadContext(
            self.registry,
            view[1:],
            ref_tracking=HeaderFlag.REF_TRACKING in flags,
            tag_mode=TagMode.named if HeaderFlag.NAMED_TAGS in flags else TagMode.id,
            max_depth=self.config.max_depth,
        )

        try:
            value = ctx.read_ref()
        except RecursionError:
            self._logger.debug("Decoding overflowed the stack")
            raise DepthLimitExceeded(self.config.max_depth) from None
        except GraphPackError as ex:
            self._logger.debug("Decoding failed at byte %d: %s", ctx.reader.position + 1, ex)
            raise

        if ctx.reader.remaining:
            raise MalformedInput(
                f"{ctx.reader.remaining} trailing byte(s) after the root value"
            )
        return value
