from datetime import timedelta

from models.revocation_registry import Revocation
from models.revoked_token import RevocationReason, TokenClass


class TestRevocationRegistry:
    def test_record_then_lookup(self, services, clock):
        registry = services.revocations
        assert registry.is_revoked("tok-1") is False
        assert registry.record("tok-1", "acc-1", TokenClass.ACCESS, clock() + timedelta(minutes=5)) is True
        assert registry.is_revoked("tok-1") is True

    def test_record_is_idempotent(self, services, clock):
        registry = services.revocations
        expires = clock() + timedelta(minutes=5)
        assert registry.record("tok-1", "acc-1", TokenClass.ACCESS, expires) is True
        assert registry.record("tok-1", "acc-1", TokenClass.ACCESS, expires) is False
        assert len(registry.entries_for("acc-1")) == 1

    def test_already_expired_token_is_not_stored(self, services, clock):
        registry = services.revocations
        assert registry.record("old", "acc-1", TokenClass.REFRESH, clock() - timedelta(seconds=1)) is False
        assert registry.is_revoked("old") is False

    def test_entry_keeps_class_and_reason(self, services, clock):
        registry = services.revocations
        registry.record("tok-r", "acc-1", TokenClass.REFRESH, clock() + timedelta(days=1),
                        RevocationReason.REFRESH)
        (entry,) = registry.entries_for("acc-1")
        assert entry.token_class == TokenClass.REFRESH
        assert entry.reason == RevocationReason.REFRESH

    def test_record_many_skips_duplicates_in_batch(self, services, clock):
        expires = clock() + timedelta(minutes=5)
        batch = [
            Revocation("dup", "acc-1", TokenClass.ACCESS, expires),
            Revocation("dup", "acc-1", TokenClass.ACCESS, expires),
            Revocation("other", "acc-1", TokenClass.ACCESS, expires),
        ]
        assert services.revocations.record_many(batch) == 2

    def test_sweep_respects_grace_period(self, services, clock):
        registry = services.revocations
        registry.record("short", "acc-1", TokenClass.ACCESS, clock() + timedelta(minutes=1))
        registry.record("long", "acc-1", TokenClass.REFRESH, clock() + timedelta(days=7))

        # Expired, but still inside the 60 second grace window
        clock.advance(minutes=1, seconds=30)
        assert registry.sweep_expired() == 0
        assert registry.is_revoked("short") is True

        clock.advance(minutes=1)
        assert registry.sweep_expired() == 1
        assert registry.is_revoked("short") is False
        assert registry.is_revoked("long") is True

    def test_sweep_is_idempotent(self, services, clock):
        registry = services.revocations
        registry.record("short", "acc-1", TokenClass.ACCESS, clock() + timedelta(minutes=1))
        clock.advance(hours=1)
        assert registry.sweep_expired() == 1
        assert registry.sweep_expired() == 0
