"""
Unit tests for entities.

Tests cover:
- Binding to a Kind and attribute access
- Immutable, required and unique attributes
- Mixin attach/detach and dependencies
- Action applicability
- Lifecycle states and transaction rollback
- Serialized updates under concurrent use
"""

import threading

import pytest

from occi_core.backend.memory import InMemoryBackend
from occi_core.category.registry import CategoryRegistry
from occi_core.category.types import Kind, Mixin, attribute
from occi_core.entity.resource import Entity, EntityState
from occi_core.errors import (
    ActionNotApplicableError,
    AttributeRangeError,
    AttributeTypeError,
    EntityStateError,
    ImmutableAttributeError,
    MissingRequiredAttributeError,
    MixinDependencyError,
    SchemaConflictError,
    UniqueConstraintViolation,
    UnknownAttributeError,
    UnknownCategoryError,
    UnrelatedMixinError,
)
from occi_core.infrastructure import (
    COMPUTE_STOP,
    IPNETWORK,
    NETWORK,
    NETWORK_MIXIN_SCHEME,
    NETWORK_UP,
    STORAGE,
    STORAGE_RESIZE,
    register_infrastructure,
)

ACTIVE = {"occi.network.state": "active"}


class _TakenValues:
    """Uniqueness lookup reporting a fixed set of taken values."""

    def __init__(self, *taken):
        self.taken = set(taken)
        self.calls = []

    def exists_with_attribute_value(self, kind, name, value):
        self.calls.append((name, value))
        return (name, value) in self.taken


@pytest.fixture
def registry():
    registry = CategoryRegistry()
    register_infrastructure(registry)
    return registry


@pytest.fixture
def network(registry):
    return Entity(NETWORK, registry, id="net1", attributes=ACTIVE)


def _activate(entity):
    entity.validate_for_submission()
    entity.mark_submitted()
    entity.mark_active()


class TestBinding:
    """Tests for construction and attribute access."""

    def test_bind_by_identity(self, registry):
        """Kind can be given by identity."""
        entity = Entity(NETWORK.identity, registry)
        assert entity.kind.identity == NETWORK.identity
        assert entity.state is EntityState.BOUND
        assert entity.id

    def test_unknown_kind_raises(self, registry):
        """Unregistered Kinds cannot be bound."""
        with pytest.raises(UnknownCategoryError):
            Entity("http://example.org/none#thing", registry)

    def test_inherited_attributes_visible(self, network):
        """Attributes of the whole Kind chain are available."""
        names = set(network.effective_attributes())
        assert {"occi.core.title", "occi.core.summary", "occi.network.label"} <= names

    def test_get_and_set(self, network):
        """Set values are read back."""
        network.set("occi.network.label", "lab1")
        assert network.get("occi.network.label") == "lab1"
        assert network.values["occi.network.label"] == "lab1"

    def test_get_unset_returns_none(self, network):
        """Unset attributes without default read as None."""
        assert network.get("occi.network.vlan") is None

    def test_set_none_clears(self, network):
        """Writing None removes the value."""
        network.set("occi.network.label", "lab1")
        network.set("occi.network.label", None)
        assert "occi.network.label" not in network.values

    def test_unknown_attribute(self, network):
        """Names outside the schema are rejected with suggestions."""
        with pytest.raises(UnknownAttributeError) as exc_info:
            network.set("occi.network.lable", "x")
        assert "occi.network.label" in exc_info.value.suggestions

    def test_type_and_range(self, network):
        """Values are checked against their descriptor."""
        with pytest.raises(AttributeTypeError):
            network.set("occi.network.vlan", "12")
        with pytest.raises(AttributeRangeError):
            network.set("occi.network.vlan", 5000)
        network.set("occi.network.vlan", 4095)

    def test_non_finite_numbers_rejected(self, registry):
        """NaN cannot slip past range or uniqueness checks."""
        lookup = _TakenValues()
        entity = Entity(NETWORK, registry, uniqueness=lookup)

        for value in (float("nan"), float("inf")):
            with pytest.raises(AttributeTypeError):
                entity.set("occi.network.vlan", value)

        assert "occi.network.vlan" not in entity.values
        assert lookup.calls == []

    def test_update_is_all_or_nothing(self, network):
        """One bad value rejects the whole update."""
        with pytest.raises(AttributeTypeError):
            network.update({"occi.network.label": "lab1", "occi.network.vlan": "x"})
        assert "occi.network.label" not in network.values

    def test_values_is_a_copy(self, network):
        """Mutating the returned mapping does not touch the entity."""
        network.values["occi.network.label"] = "sneaky"
        assert "occi.network.label" not in network.values


class TestImmutability:
    """Tests for immutable attributes."""

    def test_immutable_writable_before_creation(self, registry):
        """Immutable attributes can be set while BOUND."""
        entity = Entity(NETWORK, registry)
        entity.set("occi.network.state", "active")
        entity.set("occi.network.state", "inactive")
        assert entity.get("occi.network.state") == "inactive"

    def test_immutable_rejected_after_creation(self, network):
        """Immutable attributes cannot change once submitted."""
        _activate(network)

        with pytest.raises(ImmutableAttributeError, match="occi.network.state"):
            network.set("occi.network.state", "inactive")
        assert network.get("occi.network.state") == "active"

    def test_mutable_allowed_after_creation(self, network):
        """Mutable attributes stay writable."""
        _activate(network)
        network.set("occi.network.label", "lab1")
        assert network.get("occi.network.label") == "lab1"


class TestRequired:
    """Tests for required attributes."""

    def test_missing_required_lists_all(self, registry):
        """Every missing required attribute is reported at once."""
        entity = Entity(STORAGE, registry)

        with pytest.raises(MissingRequiredAttributeError) as exc_info:
            entity.validate_for_submission()

        assert sorted(exc_info.value.missing) == ["occi.storage.size", "occi.storage.state"]
        assert entity.state is EntityState.BOUND

    def test_validate_moves_to_validated(self, network):
        """A complete entity becomes VALIDATED."""
        network.validate_for_submission()
        assert network.state is EntityState.VALIDATED

    def test_write_invalidates(self, network):
        """Writes return a VALIDATED entity to BOUND."""
        network.validate_for_submission()
        network.set("occi.network.label", "lab1")
        assert network.state is EntityState.BOUND


class TestUnique:
    """Tests for unique attributes."""

    def test_taken_value_rejected(self, registry):
        """A value held by another entity of the Kind is rejected."""
        lookup = _TakenValues(("occi.network.vlan", 42))
        entity = Entity(NETWORK, registry, uniqueness=lookup)

        with pytest.raises(UniqueConstraintViolation, match="occi.network.vlan"):
            entity.set("occi.network.vlan", 42)
        entity.set("occi.network.vlan", 43)

    def test_unchanged_value_not_rechecked(self, registry):
        """Rewriting the current value skips the lookup."""
        lookup = _TakenValues()
        entity = Entity(NETWORK, registry, uniqueness=lookup, attributes={"occi.network.vlan": 7})
        lookup.calls.clear()

        entity.set("occi.network.vlan", 7)

        assert lookup.calls == []

    def test_rechecked_before_submission(self, registry):
        """A value claimed after it was set fails validation."""
        lookup = _TakenValues()
        entity = Entity(
            NETWORK,
            registry,
            uniqueness=lookup,
            attributes={"occi.network.vlan": 7, **ACTIVE},
        )
        lookup.taken.add(("occi.network.vlan", 7))

        with pytest.raises(UniqueConstraintViolation):
            entity.validate_for_submission()

    def test_backend_as_uniqueness_lookup(self, registry):
        """InMemoryBackend answers uniqueness for its stored entities."""
        backend = InMemoryBackend()
        first = Entity(NETWORK, registry, uniqueness=backend, attributes={"occi.network.vlan": 9, **ACTIVE})
        _activate(first)
        backend.create(first)

        second = Entity(NETWORK, registry, uniqueness=backend)
        with pytest.raises(UniqueConstraintViolation):
            second.set("occi.network.vlan", 9)


class TestMixins:
    """Tests for attach/detach."""

    def test_attach_adds_attributes(self, network):
        """Attached Mixin attributes become settable."""
        assert network.attach(IPNETWORK) is True
        network.set("occi.network.address", "10.0.0.1")

        assert network.has_mixin(IPNETWORK)
        assert network.references(IPNETWORK.identity)
        assert network.get("occi.network.address") == "10.0.0.1"

    def test_attach_twice_is_noop(self, network):
        """Attaching an attached Mixin changes nothing."""
        network.attach(IPNETWORK)
        network.set("occi.network.address", "10.0.0.1")

        assert network.attach(IPNETWORK) is False
        assert len(network.mixins) == 1
        assert network.get("occi.network.address") == "10.0.0.1"

    def test_detach_drops_values(self, network):
        """Detach removes the Mixin's attributes and their values."""
        network.attach(IPNETWORK)
        network.set("occi.network.address", "10.0.0.1")

        dropped = network.detach(IPNETWORK)

        assert dropped == ["occi.network.address"]
        with pytest.raises(UnknownAttributeError):
            network.get("occi.network.address")

    def test_attach_detach_round_trip(self, network):
        """Attach then detach restores schema and values."""
        network.set("occi.network.label", "lab1")
        schema, values = network.schema, network.values

        network.attach(IPNETWORK)
        network.detach(IPNETWORK)

        assert network.schema == schema
        assert network.values == values

    def test_detach_unattached_raises(self, network):
        """Detaching an unattached Mixin raises."""
        with pytest.raises(UnrelatedMixinError):
            network.detach(IPNETWORK)

    def test_unregistered_mixin_raises(self, network):
        """Only registered Mixins can be attached."""
        rogue = Mixin(term="rogue", scheme=NETWORK_MIXIN_SCHEME)
        with pytest.raises(UnknownCategoryError):
            network.attach(rogue)

    def test_conflicting_mixin_rejected(self, registry, network):
        """A Mixin redefining an attribute incompatibly cannot attach."""
        bad = registry.register(
            Mixin(
                term="bad",
                scheme=NETWORK_MIXIN_SCHEME,
                attributes=(attribute("occi.network.label", "number"),),
            )
        )
        schema = network.schema

        with pytest.raises(SchemaConflictError):
            network.attach(bad)
        assert network.schema is schema
        assert network.mixins == ()

    def test_dependencies_enforced(self, registry, network):
        """Dependencies attach first and detach last."""
        ext = registry.register(
            Mixin(
                term="ipext",
                scheme=NETWORK_MIXIN_SCHEME,
                attributes=(attribute("occi.network.dns"),),
                depends_on=(IPNETWORK,),
            )
        )

        with pytest.raises(MixinDependencyError, match="attached first"):
            network.attach(ext)

        network.attach(IPNETWORK)
        network.attach(ext)
        with pytest.raises(MixinDependencyError, match="required by"):
            network.detach(IPNETWORK)

        network.detach(ext)
        network.detach(IPNETWORK)
        assert network.mixins == ()

    def test_attach_invalidates(self, network):
        """Attach returns a VALIDATED entity to BOUND."""
        network.validate_for_submission()
        network.attach(IPNETWORK)
        assert network.state is EntityState.BOUND


class TestActions:
    """Tests for action applicability."""

    def test_kind_actions_applicable(self, network):
        """Actions of the Kind chain apply."""
        action, attrs = network.prepare_action(NETWORK_UP)
        assert action.term == "up"
        assert attrs == {}

    def test_foreign_action_rejected(self, network):
        """Actions declared elsewhere are not applicable."""
        with pytest.raises(ActionNotApplicableError):
            network.prepare_action(COMPUTE_STOP)

    def test_mixin_actions_follow_attachment(self, registry, network):
        """Mixin actions apply only while attached."""
        ops = registry.register(
            Mixin(term="ops", scheme=NETWORK_MIXIN_SCHEME, actions=(STORAGE_RESIZE,))
        )

        with pytest.raises(ActionNotApplicableError):
            network.prepare_action(STORAGE_RESIZE, {"size": 1})

        network.attach(ops)
        _, attrs = network.prepare_action(STORAGE_RESIZE, {"size": 1})
        assert attrs == {"size": 1}

        network.detach(ops)
        assert STORAGE_RESIZE.identity not in network.applicable_actions()

    def test_invoke_forwards_to_backend(self, network):
        """invoke validates and calls the backend."""
        backend = InMemoryBackend()
        _activate(network)
        backend.create(network)

        result = network.invoke(NETWORK_UP, backend=backend)

        assert result.action == NETWORK_UP.identity
        assert backend.invocations == [result]


class TestLifecycle:
    """Tests for state transitions and transactions."""

    def test_full_lifecycle(self, network):
        """BOUND -> VALIDATED -> SUBMITTED -> ACTIVE -> DELETED."""
        network.validate_for_submission()
        network.mark_submitted()
        assert network.state is EntityState.SUBMITTED
        network.mark_active()
        assert network.state is EntityState.ACTIVE
        network.mark_deleted()
        assert network.state is EntityState.DELETED

    def test_submit_requires_validation(self, network):
        """Submission is only allowed from VALIDATED."""
        with pytest.raises(EntityStateError, match="move to submitted"):
            network.mark_submitted()

    def test_deleted_entity_rejects_operations(self, network):
        """DELETED is terminal."""
        network.mark_deleted()

        with pytest.raises(EntityStateError):
            network.set("occi.network.label", "x")
        with pytest.raises(EntityStateError):
            network.attach(IPNETWORK)
        with pytest.raises(EntityStateError):
            network.prepare_action(NETWORK_UP)
        with pytest.raises(EntityStateError):
            network.mark_deleted()

    def test_transaction_rolls_back(self, network):
        """A failing block restores mixins, values, schema and state."""
        network.validate_for_submission()
        schema = network.schema

        with pytest.raises(RuntimeError):
            with network.transaction():
                network.attach(IPNETWORK)
                network.set("occi.network.address", "10.0.0.1")
                raise RuntimeError("backend down")

        assert network.mixins == ()
        assert "occi.network.address" not in network.values
        assert network.schema is schema
        assert network.state is EntityState.VALIDATED

    def test_to_dict_includes_defaults(self, registry):
        """Serialized attributes include defaults."""
        scheme = "http://example.org/occi/test#"
        kind = registry.register(
            Kind(term="box", scheme=scheme, attributes=(attribute("colour", default="red"),))
        )
        entity = Entity(kind, registry, id="b1")

        data = entity.to_dict()

        assert data["id"] == "b1"
        assert data["kind"] == scheme + "box"
        assert data["attributes"] == {"colour": "red"}
        assert data["state"] == "bound"


class TestConcurrency:
    """Tests for concurrent use of one entity."""

    def test_values_stay_within_schema(self, network):
        """Attach, detach and writes never leave values outside the schema."""
        violations = []
        done = threading.Event()

        def toggle():
            for _ in range(300):
                network.attach(IPNETWORK)
                network.detach(IPNETWORK)

        def write():
            i = 0
            while True:
                i += 1
                network.set("occi.network.label", f"lab{i}")
                try:
                    network.set("occi.network.address", f"10.0.{i % 256}.0")
                except UnknownAttributeError:
                    pass
                if done.is_set():
                    return

        def check():
            while not done.is_set():
                with network.transaction():
                    extra = set(network.values) - set(network.schema.names())
                if extra:
                    violations.append(extra)

        workers = [threading.Thread(target=write), threading.Thread(target=check)]
        for t in workers:
            t.start()
        toggle()
        done.set()
        for t in workers:
            t.join()

        assert violations == []
        assert network.mixins == ()
        assert "occi.network.address" not in network.values
        assert network.get("occi.network.label").startswith("lab")
        assert set(network.values) <= set(network.schema.names())
