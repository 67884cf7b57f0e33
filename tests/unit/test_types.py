"""
Unit tests for category types.

Tests cover:
- Attribute creation, range and default validation
- Category identity rules
- Kind, Mixin and Action definitions
- Type serialization/deserialization
"""

import pytest

from occi_core.category.types import (
    Action,
    Attribute,
    AttributeType,
    Kind,
    Mixin,
    attribute,
    category_from_dict,
)

SCHEME = "http://example.org/occi/test#"


class TestAttribute:
    """Tests for Attribute."""

    def test_create_string_attribute(self):
        """String attribute defaults to mutable and optional."""
        a = attribute("occi.network.label")
        assert a.type == AttributeType.STRING
        assert a.mutable is True
        assert a.required is False
        assert a.unique is False

    def test_type_from_string(self):
        """Type can be given by name."""
        assert attribute("cores", "number").type == AttributeType.NUMBER
        assert attribute("flag", "boolean").type == AttributeType.BOOLEAN

    def test_invalid_type_raises(self):
        """Unknown type name raises ValueError."""
        with pytest.raises(ValueError, match="Invalid attribute type"):
            attribute("x", "integer")

    def test_empty_name_raises(self):
        """Attribute name cannot be empty."""
        with pytest.raises(ValueError, match="cannot be empty"):
            attribute("")

    def test_number_accepts_int_and_float_not_bool(self):
        """bool is not a number."""
        assert AttributeType.NUMBER.accepts(3)
        assert AttributeType.NUMBER.accepts(2.5)
        assert not AttributeType.NUMBER.accepts(True)
        assert AttributeType.BOOLEAN.accepts(False)
        assert not AttributeType.STRING.accepts(1)

    def test_number_rejects_non_finite(self):
        """NaN and infinities are not numbers."""
        assert not AttributeType.NUMBER.accepts(float("nan"))
        assert not AttributeType.NUMBER.accepts(float("inf"))
        assert not AttributeType.NUMBER.accepts(float("-inf"))
        assert AttributeType.NUMBER.accepts(10**400)

    def test_range_bounds_must_be_numbers(self):
        """String or bool bounds fail at definition time."""
        with pytest.raises(ValueError, match="must be finite numbers or None"):
            attribute("n", "number", range=("0", "10"))
        with pytest.raises(ValueError, match="must be finite numbers or None"):
            attribute("n", "number", range=(None, True))
        with pytest.raises(ValueError, match="must be finite numbers or None"):
            attribute("n", "number", range=(0, float("nan")))
        with pytest.raises(ValueError, match="must be finite numbers or None"):
            Attribute.from_dict({"name": "n", "type": "number", "range": ["0", 10]})

    def test_string_range_is_full_match(self):
        """String range must match the whole value."""
        a = attribute("state", range="active|inactive")
        assert a.in_range("active")
        assert not a.in_range("activeX")

    def test_number_range_bounds_inclusive(self):
        """Number range is inclusive, None is open."""
        a = attribute("vlan", "number", range=(0, 4095))
        assert a.in_range(0)
        assert a.in_range(4095)
        assert not a.in_range(4096)

        open_ended = attribute("cores", "number", range=(1, None))
        assert open_ended.in_range(10_000)
        assert not open_ended.in_range(0)

    def test_number_range_list_normalized(self):
        """A list range becomes a tuple."""
        a = attribute("vlan", "number", range=[0, 10])
        assert a.range == (0, 10)

    def test_bad_range_shapes_raise(self):
        """Range must fit the type."""
        with pytest.raises(ValueError, match="must be a regex"):
            attribute("s", range=(0, 1))
        with pytest.raises(ValueError, match="min, max"):
            attribute("n", "number", range="0-1")
        with pytest.raises(ValueError, match="cannot have a range"):
            attribute("b", "boolean", range="true")
        with pytest.raises(ValueError, match="min > max"):
            attribute("n", "number", range=(5, 1))
        with pytest.raises(ValueError, match="Invalid range pattern"):
            attribute("s", range="(")

    def test_default_must_match_type_and_range(self):
        """Default is validated at definition time."""
        with pytest.raises(ValueError, match="is not a number"):
            attribute("n", "number", default="1")
        with pytest.raises(ValueError, match="outside its range"):
            attribute("m", default="fast", range="graceful|warm")

    def test_attribute_round_trip(self):
        """Attribute survives to_dict/from_dict."""
        a = attribute("vlan", "number", mutable=False, unique=True, range=(0, 4095), default=1)
        d = a.to_dict()

        assert d == {
            "name": "vlan",
            "type": "number",
            "mutable": False,
            "unique": True,
            "default": 1,
            "range": [0, 4095],
        }
        assert Attribute.from_dict(d) == a


class TestCategory:
    """Tests for category identity."""

    def test_identity_is_scheme_plus_term(self):
        """Identity concatenates scheme and term."""
        k = Kind(term="network", scheme=SCHEME)
        assert k.identity == SCHEME + "network"

    def test_scheme_must_end_with_hash(self):
        """Scheme without '#' raises."""
        with pytest.raises(ValueError, match="must end with '#'"):
            Kind(term="network", scheme="http://example.org/occi")

    def test_term_rules(self):
        """Term cannot be empty or contain whitespace."""
        with pytest.raises(ValueError, match="cannot be empty"):
            Kind(term="", scheme=SCHEME)
        with pytest.raises(ValueError, match="Invalid category term"):
            Kind(term="my kind", scheme=SCHEME)

    def test_duplicate_attribute_names_raise(self):
        """Attribute names are unique within a category."""
        with pytest.raises(ValueError, match="Duplicate attribute name"):
            Mixin(term="m", scheme=SCHEME, attributes=(attribute("a"), attribute("a", "number")))

    def test_same_definition_ignores_attribute_order(self):
        """Identical definitions compare by canonical form."""
        a = Kind(term="k", scheme=SCHEME, attributes=(attribute("x"), attribute("y")))
        b = Kind(term="k", scheme=SCHEME, attributes=(attribute("y"), attribute("x")))
        assert a.same_definition(b)

    def test_same_definition_distinguishes_type(self):
        """A Kind and a Mixin with the same identity differ."""
        assert not Kind(term="k", scheme=SCHEME).same_definition(Mixin(term="k", scheme=SCHEME))


class TestKind:
    """Tests for Kind."""

    def test_related_by_object_or_identity(self):
        """Parent can be an object or an identity string."""
        parent = Kind(term="resource", scheme=SCHEME)
        by_object = Kind(term="network", scheme=SCHEME, related=parent)
        by_id = Kind(term="network", scheme=SCHEME, related=parent.identity)

        assert by_object.related_id == parent.identity
        assert by_object.same_definition(by_id)

    def test_kind_cannot_be_own_parent(self):
        """Self-reference is rejected."""
        with pytest.raises(ValueError, match="own parent"):
            Kind(term="k", scheme=SCHEME, related=SCHEME + "k")

    def test_kind_to_dict(self):
        """Kind serializes references as identities."""
        up = Action(term="up", scheme=SCHEME)
        k = Kind(term="network", scheme=SCHEME, title="Network", actions=(up,))
        d = k.to_dict()

        assert d["type"] == "kind"
        assert d["title"] == "Network"
        assert d["actions"] == [SCHEME + "up"]
        assert "related" not in d


class TestMixin:
    """Tests for Mixin."""

    def test_dependencies(self):
        """Dependencies are reported by identity."""
        base = Mixin(term="base", scheme=SCHEME)
        m = Mixin(term="ext", scheme=SCHEME, depends_on=(base,))
        assert m.dependency_ids == (SCHEME + "base",)
        assert m.to_dict()["depends_on"] == [SCHEME + "base"]

    def test_self_dependency_raises(self):
        """A Mixin cannot depend on itself."""
        with pytest.raises(ValueError, match="depend on itself"):
            Mixin(term="m", scheme=SCHEME, depends_on=(SCHEME + "m",))


class TestCategoryFromDict:
    """Tests for category_from_dict."""

    def test_dispatch_on_type(self):
        """The 'type' entry selects the class."""
        action = category_from_dict({"type": "action", "term": "up", "scheme": SCHEME})
        mixin = category_from_dict(
            {
                "type": "mixin",
                "term": "ip",
                "scheme": SCHEME,
                "attributes": [{"name": "address"}],
            }
        )
        kind = category_from_dict(
            {"type": "kind", "term": "net", "scheme": SCHEME, "related": SCHEME + "res"}
        )

        assert isinstance(action, Action)
        assert isinstance(mixin, Mixin)
        assert mixin.attributes[0].type == AttributeType.STRING
        assert isinstance(kind, Kind)
        assert kind.related == SCHEME + "res"

    def test_unknown_type_raises(self):
        """Unknown type raises ValueError."""
        with pytest.raises(ValueError, match="Invalid category type"):
            category_from_dict({"type": "link", "term": "x", "scheme": SCHEME})
