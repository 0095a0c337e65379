import asyncio
from contextlib import asynccontextmanager

import pytest

from shared.exceptions import TransportError
from shared.repositories import access_rule
from shared.repositories.access_rule import AccessRuleRepository
from shared.repositories.credential import CredentialRepository


class StalledConnection:
    """Every query hangs until cancelled."""

    async def _hang(self, *args, **kwargs):
        await asyncio.sleep(3600)

    fetch = fetchrow = execute = _hang


class FakePool:
    def __init__(self, conn=None, error=None):
        self.conn = conn or StalledConnection()
        self.error = error

    @asynccontextmanager
    async def acquire(self, timeout=None):
        if self.error:
            raise self.error
        yield self.conn


@pytest.fixture(autouse=True)
def clear_rules_cache():
    access_rule._rules_cache.clear()
    yield
    access_rule._rules_cache.clear()


@pytest.mark.asyncio
async def test_credential_lookup_times_out_as_transport_error():
    repo = CredentialRepository(FakePool(), timeout=0.05)

    with pytest.raises(TransportError, match="Credential store"):
        await asyncio.wait_for(repo.get_by_username("bob"), timeout=2)


@pytest.mark.asyncio
async def test_credential_write_on_refused_connection_is_transport_error():
    repo = CredentialRepository(FakePool(error=ConnectionRefusedError()), timeout=0.05)

    with pytest.raises(TransportError):
        await repo.update_hash("bob", "scrypt:32768:8:1$salt$digest")


@pytest.mark.asyncio
async def test_access_rules_time_out_as_transport_error():
    repo = AccessRuleRepository(FakePool(), timeout=0.05)

    with pytest.raises(TransportError, match="Access rule store"):
        await asyncio.wait_for(repo.list_rules(), timeout=5)


@pytest.mark.asyncio
async def test_access_rule_removal_times_out_as_transport_error():
    repo = AccessRuleRepository(FakePool(), timeout=0.05)

    with pytest.raises(TransportError):
        await asyncio.wait_for(repo.remove_rule("mallory"), timeout=2)
