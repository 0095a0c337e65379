from types import SimpleNamespace

import pytest

from discord_bot.cogs.reminders import ReminderCog


class FlakyDatabase:
    """Refuses ``failures`` connects, then comes up."""

    def __init__(self, failures):
        self.failures = failures
        self.attempts = 0
        self._pool = None

    @property
    def is_connected(self):
        return self._pool is not None

    @property
    def pool(self):
        return self._pool

    async def connect(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise ConnectionRefusedError("db down")
        self._pool = object()


def fake_cog(db_manager):
    started = []
    cog = SimpleNamespace(bot=SimpleNamespace(db_manager=db_manager), _start=started.append)
    return cog, started


@pytest.mark.asyncio
async def test_cog_reconnects_pool_after_failed_startup():
    db = FlakyDatabase(failures=7)
    cog, started = fake_cog(db)

    await ReminderCog._connect_db_with_retry(cog, delay=0, max_delay=0)

    assert db.attempts == 8
    assert started == [db.pool]


@pytest.mark.asyncio
async def test_cog_uses_pool_already_connected():
    db = FlakyDatabase(failures=0)
    await db.connect()
    cog, started = fake_cog(db)

    await ReminderCog._connect_db_with_retry(cog, delay=0, max_delay=0)

    assert db.attempts == 1
    assert started == [db.pool]


@pytest.mark.asyncio
async def test_retry_delay_doubles_up_to_cap(monkeypatch):
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("discord_bot.cogs.reminders.asyncio.sleep", record_sleep)
    db = FlakyDatabase(failures=6)
    cog, started = fake_cog(db)

    await ReminderCog._connect_db_with_retry(cog, delay=5, max_delay=60)

    assert delays == [5, 10, 20, 40, 60, 60]
    assert started == [db.pool]
