"""
Tests for display name allocation and device association.
"""

import pytest

from chat_gateway.components.identity.registry import IdentityRegistry


class TestSanitizeName:
    """Test requested-name normalization."""

    def test_strips_invalid_characters(self):
        registry = IdentityRegistry()
        assert registry.sanitize_name("al ice!") == "alice"

    def test_keeps_underscore_and_digits(self):
        registry = IdentityRegistry()
        assert registry.sanitize_name("bob_42") == "bob_42"

    def test_clamps_to_max_length(self):
        registry = IdentityRegistry(max_length=5)
        assert registry.sanitize_name("abcdefgh") == "abcde"

    def test_empty_falls_back_to_default(self):
        registry = IdentityRegistry(default_name="anon")
        assert registry.sanitize_name("") == "anon"
        assert registry.sanitize_name(None) == "anon"
        assert registry.sanitize_name("!!!") == "anon"

    def test_reserved_names_are_case_insensitive(self):
        registry = IdentityRegistry(reserved={"admin", "server"})
        assert registry.sanitize_name("Admin") == "anon"
        assert registry.sanitize_name("SERVER") == "anon"
        assert registry.sanitize_name("administrator") == "administrator"


class TestAllocate:
    """Test unique name allocation."""

    def test_free_name_is_returned_verbatim(self):
        registry = IdentityRegistry()
        assert registry.allocate("alice") == "alice"
        assert not registry.is_available("alice")

    def test_taken_name_gets_smallest_free_suffix(self):
        registry = IdentityRegistry()
        assert registry.allocate("alice") == "alice"
        assert registry.allocate("alice") == "alice1"
        assert registry.allocate("alice") == "alice2"

    def test_released_suffix_is_reused(self):
        registry = IdentityRegistry()
        registry.allocate("alice")
        registry.allocate("alice")
        registry.allocate("alice")
        registry.release("alice1")
        assert registry.allocate("alice") == "alice1"

    def test_suffix_never_exceeds_max_length(self):
        registry = IdentityRegistry(max_length=5)
        assert registry.allocate("abcde") == "abcde"
        name = registry.allocate("abcde")
        assert name == "abcd1"
        assert len(name) <= 5

    def test_many_collisions_stay_within_max_length(self):
        registry = IdentityRegistry(max_length=4)
        names = {registry.allocate("abcd") for _ in range(15)}
        assert len(names) == 15
        assert all(len(n) <= 4 for n in names)

    def test_repeated_anonymous_claims(self):
        registry = IdentityRegistry(default_name="anon")
        assert [registry.allocate(None) for _ in range(3)] == ["anon", "anon1", "anon2"]

    def test_rejects_non_positive_max_length(self):
        with pytest.raises(ValueError):
            IdentityRegistry(max_length=0)


class TestClaimExact:
    def test_claims_free_name(self):
        registry = IdentityRegistry()
        assert registry.claim_exact("alice") is True
        assert not registry.is_available("alice")

    def test_refuses_taken_name(self):
        registry = IdentityRegistry()
        registry.allocate("alice")
        assert registry.claim_exact("alice") is False


class TestDeviceAssociation:
    """Test the weak device -> name map."""

    def test_bind_and_lookup(self):
        registry = IdentityRegistry()
        registry.bind_device("dev-1", "alice")
        assert registry.lookup_device("dev-1") == "alice"
        assert registry.find_device_by_name("alice") == "dev-1"

    def test_association_outlives_release(self):
        registry = IdentityRegistry()
        registry.allocate("alice")
        registry.bind_device("dev-1", "alice")
        registry.release("alice")
        assert registry.lookup_device("dev-1") == "alice"

    def test_unbind(self):
        registry = IdentityRegistry()
        registry.bind_device("dev-1", "alice")
        registry.unbind_device("dev-1")
        assert registry.lookup_device("dev-1") is None
        registry.unbind_device("dev-1")

    def test_lookup_without_device(self):
        assert IdentityRegistry().lookup_device(None) is None

    def test_stats(self):
        registry = IdentityRegistry()
        registry.allocate("alice")
        registry.allocate("alice")
        registry.bind_device("dev-1", "alice")
        stats = registry.get_stats()
        assert stats["claimed_names"] == 2
        assert stats["device_bindings"] == 1
        assert stats["total_suffixed"] == 1
