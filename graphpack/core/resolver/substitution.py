import logging
from dataclasses import dataclass
from typing import Any, Callable

from graphpack.core.errors import SubstitutionFailure

REPLACE_HOOK = "__write_replace__"
RESOLVE_HOOK = "__read_resolve__"


@dataclass(frozen=True, slots=True)
class SubstitutionHooks:
    """
    Hook pair attached to exactly one concrete type.

    replace(obj) -> substitute presented for encoding instead of obj
    resolve(obj) -> final value built from a decoded obj of this type
    """
    replace: Callable[[Any], Any] | None = None
    resolve: Callable[[Any], Any] | None = None

    def __bool__(self) -> bool:
        return self.replace is not None or self.resolve is not None


def declared_hooks(cls: type) -> SubstitutionHooks | None:
    """
    Return the hooks a class declares in its own body.

    Only the class __dict__ is consulted: a hook defined on a base class
    does not apply to subclasses, which must declare their own.
    """
    namespace = vars(cls)
    replace = namespace.get(REPLACE_HOOK)
    resolve = namespace.get(RESOLVE_HOOK)
    if replace is None and resolve is None:
        return None
    return SubstitutionHooks(replace=replace, resolve=resolve)


HookLookup = Callable[[type], SubstitutionHooks | None]


class SubstitutionTable:
    """
    Per-call set of SubstitutionLinks (original identity -> substitute).

    A value is presented to its replace hook at most once per call; any
    later sighting of the same original reuses the recorded substitute.
    Substitutes are marked final and are never substituted again, which
    is what stops a replace hook returning a peer of the same type from
    ping-ponging between the two objects.
    """
    def __init__(self, lookup: HookLookup) -> None:
        self._lookup = lookup
        self._links: dict[int, Any] = {}
        self._finals: set[int] = set()
        # keep originals and substitutes alive for the whole call
        self._retained: list[Any] = []
        self._logger = logging.getLogger("graphpack.substitution")

    def __len__(self) -> int:
        return len(self._links)

    def is_final(self, value: Any) -> bool:
        return id(value) in self._finals

    def replace(self, value: Any) -> Any:
        """
        Return the value to encode in place of `value`, or `value` itself.

        Replacement chains: while the replacement is of a different type
        that declares its own replace hook, that hook is applied too.
        """
        key = id(value)
        if key in self._finals:
            return value
        if key in self._links:
            return self._links[key]

        current = value
        visited: set[type] = set()
        while type(current) not in visited:
            visited.add(type(current))
            hooks = self._lookup(type(current))
            if hooks is None or hooks.replace is None:
                break
            try:
                replacement = hooks.replace(current)
            except Exception as exc:
                raise SubstitutionFailure(type(current), "replace") from exc
            if replacement is current or type(replacement) is type(current):
                current = replacement
                break
            current = replacement

        self._links[key] = current
        self._retained.append(value)
        if current is not value:
            self._finals.add(id(current))
            self._retained.append(current)
            self._logger.debug(
                "%s substituted by %s", type(value).__qualname__, type(current).__qualname__
            )
        return current

    def resolve(self, value: Any) -> Any:
        hooks = self._lookup(type(value))
        if hooks is None or hooks.resolve is None:
            return value
        try:
            return hooks.resolve(value)
        except Exception as exc:
            raise SubstitutionFailure(type(value), "resolve") from exc
