from collections import Counter, OrderedDict, defaultdict, deque
from typing import Any, NamedTuple

import pytest

from graphpack.core.codec import GraphCodec
from graphpack.core.errors import (
    GraphPackError,
    InstanceStateFailure,
    MalformedInput,
    UnsupportedType,
)
from graphpack.core.models.config import CodecConfig
from graphpack.core.serializers.objects import (
    BuiltinSubclassSerializer,
    EnumSerializer,
    NamedTupleSerializer,
    builtin_base,
    opaque_base,
)
from graphpack.core.serializers.structs import ObjectSerializer, StructSerializer, declares_state
from tests.utils import (
    BrokenState,
    Color,
    CustomReplaceClass2,
    DefaultState,
    FrozenTags,
    Name,
    Node,
    Pair,
    Perm,
    Point,
    Shade,
    SimpleCollection,
    SimpleMap,
    StatefulSubclass,
    TaggedList,
    Triple,
    Versioned,
    round_trip,
)


def round_check(sender: GraphCodec, receiver: GraphCodec, value):
    result = receiver.deserialize(sender.serialize(value))
    assert result == value
    assert type(result) is type(value)
    return result


@pytest.fixture
def receiver() -> GraphCodec:
    return GraphCodec(config=CodecConfig(require_registration=False))


@pytest.mark.ut
def test_builtin_base_and_opaque_base():
    assert builtin_base(OrderedDict) is dict
    assert builtin_base(TaggedList) is list
    assert builtin_base(Name) is str
    assert builtin_base(Node) is None
    assert builtin_base(list) is None

    assert opaque_base(deque) is deque
    assert opaque_base(Node) is None
    assert opaque_base(Point) is None


@pytest.mark.ut
def test_declares_state():
    assert declares_state(Versioned)
    assert declares_state(DefaultState)
    assert declares_state(StatefulSubclass)
    assert not declares_state(Node)
    assert not declares_state(CustomReplaceClass2)


@pytest.mark.ut
def test_permissive_derivation_picks_serializer(permissive_codec):
    registry = permissive_codec.registry

    assert isinstance(registry.resolve_by_type(Color), EnumSerializer)
    assert isinstance(registry.resolve_by_type(Pair), NamedTupleSerializer)
    assert isinstance(registry.resolve_by_type(OrderedDict), BuiltinSubclassSerializer)
    assert isinstance(registry.resolve_by_type(Name), BuiltinSubclassSerializer)
    assert isinstance(registry.resolve_by_type(Point), StructSerializer)
    assert registry.resolve_by_type(Versioned).stateful
    assert not registry.resolve_by_type(Node).stateful


@pytest.mark.ut
@pytest.mark.parametrize(
    "value",
    [
        frozenset({1, 2}),
        frozenset({"a", "b"}),
        frozenset(),
        SimpleCollection([1, 2], frozenset({"a", "b"})),
    ],
)
def test_immutable_list_resolve(permissive_codec, receiver, value):
    round_check(permissive_codec, receiver, value)


@pytest.mark.ut
@pytest.mark.parametrize(
    "value",
    [
        OrderedDict(k=2),
        OrderedDict([(1, 2), (0, 3)]),
        Counter("abca"),
        SimpleMap({"k": 2}, OrderedDict([(1, 2)])),
    ],
)
def test_immutable_map_resolve(permissive_codec, receiver, value):
    result = round_check(permissive_codec, receiver, value)

    if isinstance(value, OrderedDict):
        assert list(result) == list(value)


@pytest.mark.ut
def test_frozenset_is_a_builtin(codec):
    inner = frozenset({1})

    result = round_trip(codec, [inner, inner])

    assert result == [frozenset({1}), frozenset({1})]
    assert type(result[0]) is frozenset
    assert result[0] is result[1]


@pytest.mark.ut
def test_defaultdict_keeps_items(permissive_codec):
    value = defaultdict(list, {"a": [1]})

    result = round_trip(permissive_codec, value)

    assert type(result) is defaultdict
    assert dict(result) == {"a": [1]}


@pytest.mark.ut
def test_list_subclass_keeps_attributes_and_cycles(permissive_codec):
    value = TaggedList([1, 2])
    value.label = "tagged"
    value.append(value)

    result = round_trip(permissive_codec, value)

    assert type(result) is TaggedList
    assert result.label == "tagged"
    assert result[:2] == [1, 2]
    assert result[2] is result


@pytest.mark.ut
def test_immutable_subclasses_round_trip(permissive_codec):
    tags = FrozenTags({"x", "y"})
    name = Name("alice")
    name.source = "ldap"

    result = round_trip(permissive_codec, [tags, name, name])

    assert type(result[0]) is FrozenTags
    assert result[0] == {"x", "y"}
    assert type(result[1]) is Name
    assert result[1] == "alice"
    assert result[1].source == "ldap"
    assert result[1] is result[2]


@pytest.mark.ut
@pytest.mark.parametrize("ref_tracking", [True, False])
def test_enum_members_round_trip(permissive_codec, ref_tracking):
    value = [Color.RED, Color.GREEN, Color.RED, Perm.R | Perm.W, Perm(0)]

    result = round_trip(permissive_codec, value, ref_tracking=ref_tracking)

    assert result == value
    assert result[0] is Color.RED
    assert result[1] is Color.GREEN


@pytest.mark.ut
def test_unknown_enum_member_is_malformed():
    sender = GraphCodec()
    sender.register(Color, "example.color")
    receiver = GraphCodec()
    receiver.register(Shade, "example.color")

    assert receiver.deserialize(sender.serialize(Color.RED)) is Shade.RED

    with pytest.raises(MalformedInput):
        receiver.deserialize(sender.serialize(Color.GREEN))


@pytest.mark.ut
def test_named_tuple_round_trip(permissive_codec):
    shared = [2]
    pair = Pair(1, shared)

    result = round_trip(permissive_codec, [pair, pair, shared])

    assert type(result[0]) is Pair
    assert result[0] == (1, [2])
    assert result[0] is result[1]
    assert result[0].right is result[2]


@pytest.mark.ut
def test_named_tuple_takes_receiver_defaults():
    class Single(NamedTuple):
        left: Any

    sender = GraphCodec()
    sender.register(Single, "example.pair")
    receiver = GraphCodec()
    receiver.register(Pair, "example.pair")

    result = receiver.deserialize(sender.serialize(Single([1])))

    assert type(result) is Pair
    assert result == Pair([1], None)


@pytest.mark.ut
def test_named_tuple_construction_failure_is_typed():
    sender = GraphCodec()
    sender.register(Triple, "example.pair")
    receiver = GraphCodec()
    receiver.register(Pair, "example.pair")

    with pytest.raises(InstanceStateFailure) as exc:
        receiver.deserialize(sender.serialize(Triple(1, 2, 3)))

    assert exc.value.cls is Pair
    assert isinstance(exc.value.__cause__, TypeError)


@pytest.mark.ut
def test_c_level_state_without_hooks_is_unsupported(permissive_codec):
    with pytest.raises(UnsupportedType) as exc:
        permissive_codec.serialize(deque([1]))

    assert exc.value.cls is deque
    assert isinstance(exc.value, GraphPackError)

    with pytest.raises(UnsupportedType):
        GraphCodec().register(deque)


@pytest.mark.ut
def test_state_hooks_keep_self_reference(permissive_codec):
    value = Versioned("v")

    result = round_trip(permissive_codec, value)

    assert type(result) is Versioned
    assert result.name == "v"
    assert result.me is result


@pytest.mark.ut
def test_default_state_is_passed_to_setstate(permissive_codec):
    result = round_trip(permissive_codec, DefaultState(3))

    assert result.value == 3
    assert result.restored is True


@pytest.mark.ut
def test_getstate_failure_is_typed(permissive_codec):
    with pytest.raises(InstanceStateFailure) as exc:
        permissive_codec.serialize(BrokenState())

    assert exc.value.cls is BrokenState
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.ut
def test_setstate_failure_is_typed(permissive_codec):
    payload = permissive_codec.serialize(Versioned("v"))
    Versioned.version = 3
    try:
        with pytest.raises(InstanceStateFailure) as exc:
            permissive_codec.deserialize(payload)
    finally:
        Versioned.version = 2

    assert isinstance(exc.value.__cause__, ValueError)


@pytest.mark.ut
def test_unknown_object_layout_is_malformed(codec):
    codec.register(Node, "example.node")
    payload = bytearray(codec.serialize(Node("n")))
    # header, NEW_VALUE, tag, then the layout byte
    payload[2 + 1 + len("example.node")] = 7

    with pytest.raises(MalformedInput):
        codec.deserialize(bytes(payload))


@pytest.mark.ut
@pytest.mark.parametrize("ref_tracking", [True, False])
def test_write_replace_with_state_hooks(permissive_codec, ref_tracking):
    permissive_codec.register(CustomReplaceClass2)
    permissive_codec.register(StatefulSubclass)

    for o in (StatefulSubclass(False, 2, 10), StatefulSubclass(True, 2, 11)):
        result = round_trip(permissive_codec, o, ref_tracking=ref_tracking)
        assert type(result) is StatefulSubclass
        assert result == o

    o = StatefulSubclass(False, 6, 12)
    assert round_trip(permissive_codec, o, ref_tracking=ref_tracking) == [o.copy, o.age]

    serializer = permissive_codec.registry.resolve_by_type(StatefulSubclass)
    assert isinstance(serializer.structural, ObjectSerializer)
    assert serializer.structural.stateful
