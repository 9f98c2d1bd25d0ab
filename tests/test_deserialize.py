"""Tests for decoding documents into dataclasses."""

import enum
from dataclasses import dataclass

import pytest

from kdl_core import from_str
from kdl_core.config import DecodeConfig
from kdl_core.deserialize import Decoder
from kdl_core.document import Span
from kdl_core.errors import (
    DuplicateKeyError,
    MissingArgumentError,
    MissingChildError,
    MissingPropertyError,
    NoMatchingVariantError,
    RecursionDepthExceededError,
    SchemaError,
    TypeMismatchError,
    UnexpectedExtraFieldError,
)
from kdl_core.reader import parse
from kdl_core.schema import (
    argument,
    arguments,
    child,
    children,
    flatten,
    node_name,
    options,
    prop,
)
from kdl_core.values import Spanned, u16


class Level(enum.Enum):
    DEBUG = "debug"
    INFO = "info"


@dataclass
class Server:
    host: str = argument()
    port: u16 = prop()


@dataclass
class Config:
    server: Server = child("server")


@dataclass
class Tuning:
    timeout: int = child()
    retries: int = child(default=3)
    level: Level = prop("level", default=Level.INFO)


@dataclass
class TuningDoc:
    tuning: Tuning = child()


@options(allow_extras=True)
@dataclass
class Lenient:
    name: str = argument()


@dataclass
class LenientDoc:
    item: Lenient = child()


# ---------------------------------------------------------------------------
# Basic binding
# ---------------------------------------------------------------------------

def test_server_config():
    cfg = from_str('server "localhost" port=8080', Config)
    assert cfg == Config(server=Server(host="localhost", port=8080))

def test_children_and_properties_in_any_order():
    text = "tuning level=\"debug\" {\n    retries 5\n    timeout 30\n}"
    assert from_str(text, TuningDoc).tuning == Tuning(timeout=30, retries=5, level=Level.DEBUG)

def test_defaults_fill_missing_optional_fields():
    assert from_str("tuning { timeout 1 }", TuningDoc).tuning == Tuning(timeout=1)

def test_decode_node():
    node = parse('server "h" port=1').nodes[0]
    assert Decoder().decode_node(node, Server) == Server(host="h", port=1)

def test_decode_is_deterministic():
    text = 'server "localhost" port=8080'
    assert from_str(text, Config) == from_str(text, Config)

    bad = 'server "localhost" port="x"'
    errors = []
    for _ in range(2):
        with pytest.raises(TypeMismatchError) as info:
            from_str(bad, Config)
        errors.append((info.value.message, info.value.span))
    assert errors[0] == errors[1]


# ---------------------------------------------------------------------------
# Missing and mismatched values
# ---------------------------------------------------------------------------

def test_type_mismatch_carries_value_span():
    text = 'server "localhost" port="not-a-number"'
    with pytest.raises(TypeMismatchError) as info:
        from_str(text, Config)
    err = info.value
    start = text.index('"not-a-number"')
    assert err.span == Span(start, len('"not-a-number"'))
    assert err.field == "port"
    assert err.node == "server"
    assert err.expected == "integer in 0..65535"

def test_out_of_range():
    with pytest.raises(TypeMismatchError):
        from_str('server "h" port=70000', Config)

def test_missing_property_points_at_node():
    text = 'server "localhost"'
    with pytest.raises(MissingPropertyError) as info:
        from_str(text, Config)
    assert info.value.span == Span(0, len(text))
    assert info.value.field == "port"

def test_missing_argument():
    with pytest.raises(MissingArgumentError):
        from_str("server port=1", Config)

def test_missing_child():
    with pytest.raises(MissingChildError) as info:
        from_str("", Config)
    assert info.value.field == "server"

def test_scalar_child_needs_a_value():
    with pytest.raises(MissingArgumentError):
        from_str("tuning { timeout }", TuningDoc)

def test_bad_enum_value():
    with pytest.raises(TypeMismatchError, match="one of 'debug', 'info'"):
        from_str('tuning level="loud" { timeout 1 }', TuningDoc)


# ---------------------------------------------------------------------------
# Leftovers and duplicates
# ---------------------------------------------------------------------------

def test_extra_property_is_rejected():
    text = 'server "localhost" port=8080 debug=#true'
    with pytest.raises(UnexpectedExtraFieldError) as info:
        from_str(text, Config)
    start = text.index("debug")
    assert info.value.span == Span(start, len("debug=#true"))
    # without the extra it decodes
    assert from_str('server "localhost" port=8080', Config)

def test_extra_argument_is_rejected():
    with pytest.raises(UnexpectedExtraFieldError, match="unexpected argument"):
        from_str('server "a" "b" port=1', Config)

def test_extra_child_is_rejected():
    with pytest.raises(UnexpectedExtraFieldError, match="'debug'"):
        from_str('server "a" port=1 { debug }', Config)

def test_unknown_top_level_node_is_rejected():
    with pytest.raises(UnexpectedExtraFieldError):
        from_str('server "a" port=1\nlogging', Config)

def test_allow_extras_on_type():
    assert from_str('item "x" 1 2 k=3 { c }', LenientDoc).item == Lenient(name="x")

def test_allow_extras_in_config():
    cfg = from_str(
        'server "a" port=1 debug=#true\nother',
        Config,
        DecodeConfig(allow_extras=True),
    )
    assert cfg.server.port == 1

def test_duplicate_property():
    text = 'server "h" port=1 port=2'
    with pytest.raises(DuplicateKeyError) as info:
        from_str(text, Config)
    assert info.value.key == "port"
    assert info.value.span == Span(text.rindex("port"), len("port=2"))


# ---------------------------------------------------------------------------
# Flatten and the shared cursor
# ---------------------------------------------------------------------------

@dataclass
class Inner:
    second: str = argument()
    mode: str = prop(default="r")


@dataclass
class Outer:
    first: str = argument()
    inner: Inner = flatten()


@dataclass
class OuterDoc:
    item: Outer = child()


def test_flatten_takes_next_argument():
    doc = from_str('item "a" "b"', OuterDoc)
    assert doc.item == Outer(first="a", inner=Inner(second="b"))

def test_flatten_shares_properties():
    doc = from_str('item "a" "b" mode="w"', OuterDoc)
    assert doc.item.inner.mode == "w"

def test_flatten_missing_argument():
    with pytest.raises(MissingArgumentError) as info:
        from_str('item "a"', OuterDoc)
    assert info.value.field == "second"


@dataclass
class Advanced:
    buffer_size: u16 = prop()
    max_connections: u16 = prop()


@dataclass
class Limits:
    buffer_size: u16 = prop(default=0)
    max_connections: u16 = prop(default=0)


@dataclass
class Host:
    host: str = argument()
    advanced: Advanced | None = flatten(default=None)


@dataclass
class HostDoc:
    server: Host = child()


def test_optional_flatten_absent():
    assert from_str('server "localhost"', HostDoc).server == Host(host="localhost")

def test_optional_flatten_present():
    doc = from_str('server "localhost" buffer_size=10 max_connections=2', HostDoc)
    assert doc.server.advanced == Advanced(buffer_size=10, max_connections=2)

def test_optional_flatten_partial_fills_defaults():
    @dataclass
    class Plain:
        host: str = argument()
        limits: Limits | None = flatten(default=None)

    @dataclass
    class PlainDoc:
        server: Plain = child()

    doc = from_str('server "h" buffer_size=4096', PlainDoc)
    assert doc.server.limits == Limits(buffer_size=4096)

def test_optional_flatten_partial_required_fields():
    # one of Advanced's entries is present, so it is read and the other is missing
    with pytest.raises(MissingPropertyError, match="max_connections"):
        from_str('server "h" buffer_size=1', HostDoc)

def test_flatten_with_default_absent():
    @dataclass
    class Named:
        name: str = argument()
        limits: Limits = flatten(default_factory=lambda: Limits(buffer_size=8))

    @dataclass
    class NamedDoc:
        server: Named = child()

    assert from_str('server "main"', NamedDoc).server.limits == Limits(buffer_size=8)
    assert from_str('server "main" max_connections=3', NamedDoc).server.limits == Limits(
        max_connections=3
    )


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

@options("http")
@dataclass
class Http:
    url: str = prop()


@options("git")
@dataclass
class Git:
    repo: str = argument()
    branch: str = prop(default="main")


@dataclass
class Project:
    source: Http | Git = child()


@dataclass
class TaggedProject:
    source: Http | Git = child("source")


@dataclass
class Sources:
    sources: list[Http | Git] = children()


@dataclass
class Package:
    name: str = argument()
    source: Http | Git = flatten()


@dataclass
class Packages:
    packages: list[Package] = children("package")


def test_enum_child_by_variant_name():
    assert from_str('git "r" branch="dev"', Project).source == Git(repo="r", branch="dev")
    assert from_str('http url="u"', Project).source == Http(url="u")

def test_enum_child_missing():
    with pytest.raises(MissingChildError, match="git or http"):
        from_str("", Project)

def test_tagged_enum_child_by_structure():
    assert from_str('source url="u"', TaggedProject).source == Http(url="u")
    assert from_str('source "r"', TaggedProject).source == Git(repo="r")

def test_tagged_enum_child_by_annotation():
    assert from_str('(git)source "r"', TaggedProject).source == Git(repo="r")

def test_tagged_enum_no_match():
    with pytest.raises(NoMatchingVariantError) as info:
        from_str("source 1 2", TaggedProject)
    assert [name for name, _ in info.value.candidates] == ["http", "git"]

def test_committed_variant_does_not_backtrack():
    # http takes no arguments, so git is committed and rejects "url"
    with pytest.raises(UnexpectedExtraFieldError):
        from_str('source "r" url="u"', TaggedProject)

def test_enum_children_list():
    doc = from_str('http url="a"\ngit "b"\nhttp url="c"', Sources)
    assert doc.sources == [Http(url="a"), Git(repo="b"), Http(url="c")]

def test_flattened_enum():
    doc = from_str('package "a" url="u"\npackage "b" "repo"', Packages)
    assert doc.packages == [
        Package(name="a", source=Http(url="u")),
        Package(name="b", source=Git(repo="repo")),
    ]

def test_duplicate_property_on_enum_node():
    with pytest.raises(DuplicateKeyError) as info:
        from_str('source url="a" url="b"', TaggedProject)
    assert info.value.key == "url"

def test_duplicate_property_on_untagged_enum_node():
    with pytest.raises(DuplicateKeyError):
        from_str('git "r" branch="a" branch="b"', Project)


@dataclass
class MaybeProject:
    source: Http | Git | None = child()


def test_null_untagged_enum_child():
    assert from_str("source #null", MaybeProject).source is None
    assert from_str('git "r"', MaybeProject).source == Git(repo="r")


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

@dataclass
class Setting:
    key: str = node_name()
    value: int = argument()


@dataclass
class Settings:
    items: list[Setting] = children()


@dataclass
class Env:
    vars: dict[str, str] = children()


@dataclass
class Dep:
    version: str = prop()


@dataclass
class Manifest:
    env: Env = child(default_factory=lambda: Env(vars={}))
    deps: dict[str, Dep] = children("dependency", key="argument", default_factory=dict)
    tags: frozenset[str] = children("tag", default_factory=frozenset)


@dataclass
class Point:
    coords: tuple[int, ...] = arguments()


@dataclass
class Shape:
    points: list[Point] = children("point")


def test_node_name_binding():
    doc = from_str("a 1\nb 2", Settings)
    assert doc.items == [Setting("a", 1), Setting("b", 2)]

def test_map_keyed_by_name():
    doc = from_str('env {\n    HOME "/root"\n    PATH "/bin"\n}', Manifest)
    assert doc.env.vars == {"HOME": "/root", "PATH": "/bin"}

def test_map_keyed_by_argument():
    text = 'dependency "serde" version="1.0"\ndependency "lark" version="1.2"'
    doc = from_str(text, Manifest)
    assert doc.deps == {"serde": Dep("1.0"), "lark": Dep("1.2")}
    assert list(doc.deps) == ["serde", "lark"]

def test_duplicate_map_key():
    text = 'dependency "serde" version="1"\ndependency "serde" version="2"'
    with pytest.raises(DuplicateKeyError) as info:
        from_str(text, Manifest)
    assert info.value.key == "serde"
    assert info.value.span.offset == text.rindex('"serde"')

def test_map_key_argument_missing():
    with pytest.raises(MissingArgumentError):
        from_str('dependency version="1"', Manifest)

def test_set_children():
    doc = from_str('tag "b"\ntag "a"', Manifest)
    assert doc.tags == frozenset({"a", "b"})

def test_duplicate_set_element():
    with pytest.raises(DuplicateKeyError, match="duplicate element"):
        from_str('tag "a"\ntag "a"', Manifest)

def test_absent_collections_use_defaults():
    doc = from_str("", Manifest)
    assert doc.deps == {}
    assert doc.tags == frozenset()
    assert doc.env == Env(vars={})

def test_arguments_into_tuple():
    doc = from_str("point 1 2\npoint 3 4 5", Shape)
    assert doc.points == [Point((1, 2)), Point((3, 4, 5))]

def test_arguments_type_mismatch():
    with pytest.raises(TypeMismatchError):
        from_str('point 1 "two"', Shape)


# ---------------------------------------------------------------------------
# Optional, Spanned
# ---------------------------------------------------------------------------

@dataclass
class Tls:
    cert: str = prop()


@dataclass
class Listener:
    host: Spanned[str] = argument()
    tls: Tls | None = child()
    note: str | None = prop(default=None)


@dataclass
class Listeners:
    listeners: list[Listener] = children("listen")


def test_null_child_is_none():
    doc = from_str('listen "h" {\n    tls #null\n}', Listeners)
    assert doc.listeners[0].tls is None

def test_optional_child_value():
    doc = from_str('listen "h" {\n    tls cert="c"\n}', Listeners)
    assert doc.listeners[0].tls == Tls(cert="c")

def test_null_property():
    doc = from_str('listen "h" note=#null { tls #null }', Listeners)
    assert doc.listeners[0].note is None

def test_spanned_leaf():
    text = 'listen "example.org" { tls #null }'
    host = from_str(text, Listeners).listeners[0].host
    assert host.value == "example.org"
    assert text[host.span.offset:host.span.end] == '"example.org"'


# ---------------------------------------------------------------------------
# Depth and schema problems
# ---------------------------------------------------------------------------

@dataclass
class Nest:
    inner: "Nest | None" = child("a", default=None)


@dataclass
class NestDoc:
    a: Nest | None = child(default=None)


def _nested(depth):
    return "a {" * depth + "}" * depth


def test_depth_within_limit():
    doc = from_str(_nested(3), NestDoc)
    assert doc.a.inner.inner.inner is None

def test_depth_limit():
    with pytest.raises(RecursionDepthExceededError) as info:
        from_str(_nested(6), NestDoc, DecodeConfig(max_depth=5))
    assert info.value.limit == 5

def test_default_depth_limit():
    with pytest.raises(RecursionDepthExceededError):
        from_str(_nested(100), NestDoc)
    assert from_str(_nested(60), NestDoc).a is not None

def test_top_level_must_bind_children():
    with pytest.raises(SchemaError, match="top-level"):
        from_str('x "h" port=1', Server)

def test_top_level_must_be_dataclass():
    with pytest.raises(SchemaError):
        from_str("x", dict)
