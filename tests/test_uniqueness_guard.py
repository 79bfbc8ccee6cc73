"""Tests for the registration uniqueness guard."""

from conftest import ALICE, BOB
from identity.identity_store import Identity
from identity.uniqueness_guard import AlreadyRegistered, NoMatch, UniquenessGuard, check_uniqueness


class TestCheckUniqueness:
    """Tests for check_uniqueness."""

    def test_empty_store_is_no_match(self) -> None:
        """Nobody can be a duplicate of an empty roster."""
        result = check_uniqueness([0.0, 0.0, 0.0], [])
        assert isinstance(result, NoMatch)
        assert result.is_already_registered is False

    def test_close_face_is_already_registered(self) -> None:
        """A face within the threshold is reported with its similarity."""
        alice = Identity.create("Alice", [ALICE])

        result = check_uniqueness([0.3, 0.0, 0.0], [alice])

        assert isinstance(result, AlreadyRegistered)
        assert result.is_already_registered is True
        assert result.name == "Alice"
        assert result.similarity_percent == 70
        assert result.distance == 0.3

    def test_threshold_is_strict(self) -> None:
        """A face exactly at the threshold is not a duplicate."""
        alice = Identity.create("Alice", [ALICE])

        assert isinstance(check_uniqueness([0.45, 0.0, 0.0], [alice]), NoMatch)
        assert isinstance(check_uniqueness([0.44, 0.0, 0.0], [alice]), AlreadyRegistered)

    def test_first_hit_in_store_order_wins(self) -> None:
        """The scan stops at the first identity under the threshold, even if a later one is closer."""
        alice = Identity.create("Alice", [[0.4, 0.0, 0.0]])
        bob = Identity.create("Bob", [[0.1, 0.0, 0.0]])

        result = check_uniqueness([0.0, 0.0, 0.0], [alice, bob])

        assert result.name == "Alice"

    def test_any_sample_can_trigger(self) -> None:
        """Every stored sample of an identity is checked, not just the first."""
        alice = Identity.create("Alice", [[5.0, 5.0, 5.0], [0.1, 0.0, 0.0]])

        result = check_uniqueness([0.0, 0.0, 0.0], [alice])

        assert result.name == "Alice"

    def test_custom_threshold(self) -> None:
        """The threshold can be tightened."""
        alice = Identity.create("Alice", [ALICE])

        assert isinstance(check_uniqueness([0.3, 0.0, 0.0], [alice], threshold=0.2), NoMatch)


class TestUniquenessGuard:
    """Tests for the store-backed guard."""

    def test_checks_against_store(self, identity_store, enroll) -> None:
        """The guard sees identities added after it was created."""
        guard = UniquenessGuard(identity_store)
        assert isinstance(guard.check(BOB), NoMatch)

        enroll(identity_store, "Bob", BOB)

        result = guard.check([1.05, 0.0, 0.0])
        assert isinstance(result, AlreadyRegistered)
        assert result.name == "Bob"

    def test_default_threshold(self, identity_store) -> None:
        """The configured default is 0.45."""
        assert UniquenessGuard(identity_store).threshold == 0.45
