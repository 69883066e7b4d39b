"""Unit tests for the Credential model."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from cad_client.models.credentials import Credential

ISSUED = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
EXPIRES = ISSUED + timedelta(minutes=30)


@pytest.fixture
def credential() -> Credential:
    return Credential("customer-42", "T1", "S1", ISSUED, EXPIRES)


class TestCredential:
    """Test Credential expiry helpers."""

    def test_not_expired_one_second_before(self, credential) -> None:
        assert not credential.is_expired(EXPIRES - timedelta(seconds=1))

    def test_expired_exactly_at_expires_at(self, credential) -> None:
        """Test expires_at itself is outside the validity window."""
        assert credential.is_expired(EXPIRES)

    def test_expired_after(self, credential) -> None:
        assert credential.is_expired(EXPIRES + timedelta(minutes=1))

    def test_ttl_seconds(self, credential) -> None:
        assert credential.ttl_seconds(ISSUED) == 1800.0
        assert credential.ttl_seconds(EXPIRES + timedelta(seconds=5)) == 0.0

    def test_secret_not_in_repr(self, credential) -> None:
        assert "S1" not in repr(credential)

    def test_frozen(self, credential) -> None:
        with pytest.raises(FrozenInstanceError):
            credential.token = "T2"
