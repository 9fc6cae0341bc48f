"""Tests for the SQLite OTP repository and the timeout guard."""

import sqlite3
from datetime import timedelta

import pytest

from otpguard.db import SQLiteOTPRepository, _insert
from otpguard.errors import RepositoryUnavailableError
from otpguard.services.repository import GuardedRepository
from tests.mocks.clock import DEFAULT_START
from tests.mocks.models import PHONE, PHONE_2, make_record
from tests.mocks.repository import BrokenRepository, SlowRepository


@pytest.fixture()
async def sqlite_repo(tmp_path):
    repo = SQLiteOTPRepository(str(tmp_path / "otp.db"))
    await repo.connect()
    yield repo
    await repo.close()


class TestSQLiteRepository:
    async def test_insert_and_find_latest(self, sqlite_repo):
        older = make_record(code="111111", created_at=DEFAULT_START, is_used=True)
        newer = make_record(code="222222", created_at=DEFAULT_START + timedelta(seconds=1))
        await sqlite_repo.supersede_and_insert(older)
        await sqlite_repo.supersede_and_insert(newer)

        latest = await sqlite_repo.find_latest(PHONE)

        assert latest == newer
        assert await sqlite_repo.find_latest(PHONE_2) is None

    async def test_round_trip_keeps_timestamps(self, sqlite_repo):
        record = make_record(created_at=DEFAULT_START + timedelta(microseconds=250))
        await sqlite_repo.supersede_and_insert(record)
        stored = await sqlite_repo.find_latest(PHONE)
        assert stored.created_at == record.created_at
        assert stored.expires_at == record.expires_at

    async def test_find_active_skips_used_and_expired(self, sqlite_repo):
        await sqlite_repo.supersede_and_insert(make_record(code="111111", is_used=True))
        await sqlite_repo.supersede_and_insert(
            make_record(code="222222", created_at=DEFAULT_START - timedelta(minutes=20))
        )
        assert await sqlite_repo.find_active(PHONE, DEFAULT_START) is None

        fresh = make_record(code="333333", identity=PHONE_2)
        await sqlite_repo.supersede_and_insert(fresh)
        assert await sqlite_repo.find_active(PHONE_2, DEFAULT_START) == fresh
        assert await sqlite_repo.find_active(PHONE_2, fresh.expires_at) is None

    async def test_count_since(self, sqlite_repo):
        for minutes in (0, 30, 90):
            await sqlite_repo.supersede_and_insert(
                make_record(created_at=DEFAULT_START - timedelta(minutes=minutes), is_used=True)
            )
        assert await sqlite_repo.count_since(PHONE, DEFAULT_START - timedelta(hours=1)) == 2
        assert await sqlite_repo.count_since(PHONE, DEFAULT_START) == 1
        assert await sqlite_repo.count_since(PHONE_2, DEFAULT_START - timedelta(days=1)) == 0

    async def test_supersede_and_insert(self, sqlite_repo):
        first = make_record()
        await sqlite_repo.supersede_and_insert(make_record(identity=PHONE_2))
        assert await sqlite_repo.supersede_and_insert(first) == 0

        second = make_record(code="654321", created_at=DEFAULT_START + timedelta(seconds=61))
        assert await sqlite_repo.supersede_and_insert(second) == 1

        assert await sqlite_repo.find_active(PHONE, second.created_at) == second
        assert (await sqlite_repo.find_latest(PHONE_2)).is_used is False

    async def test_failed_insert_keeps_previous_code(self, sqlite_repo):
        first = make_record()
        await sqlite_repo.supersede_and_insert(first)

        # Same primary key: the insert fails after the supersede ran.
        clash = make_record(id=first.id, created_at=DEFAULT_START + timedelta(seconds=61))
        with pytest.raises(sqlite3.IntegrityError):
            await sqlite_repo.supersede_and_insert(clash)

        assert await sqlite_repo.find_active(PHONE, DEFAULT_START) == first

        # The connection is usable again afterwards.
        later = make_record(code="222222", created_at=DEFAULT_START + timedelta(seconds=62))
        assert await sqlite_repo.supersede_and_insert(later) == 1

    async def test_only_one_unused_record_per_phone(self, sqlite_repo):
        await sqlite_repo.supersede_and_insert(make_record())
        with pytest.raises(sqlite3.IntegrityError):
            await _insert(
                sqlite_repo._conn(), make_record(created_at=DEFAULT_START + timedelta(seconds=1))
            )

    async def test_update_attempts_and_mark_used(self, sqlite_repo):
        record = make_record()
        await sqlite_repo.supersede_and_insert(record)

        await sqlite_repo.update_attempts(record.id, 3)
        assert (await sqlite_repo.find_latest(PHONE)).attempts == 3

        verified_at = DEFAULT_START + timedelta(minutes=1)
        await sqlite_repo.mark_used(record.id, verified_at=verified_at)
        stored = await sqlite_repo.find_latest(PHONE)
        assert stored.is_used is True
        assert stored.verified_at == verified_at

    async def test_mark_used_without_verification(self, sqlite_repo):
        record = make_record()
        await sqlite_repo.supersede_and_insert(record)
        await sqlite_repo.mark_used(record.id)
        stored = await sqlite_repo.find_latest(PHONE)
        assert stored.is_used is True
        assert stored.verified_at is None


class TestGuardedRepository:
    async def test_passes_results_through(self, repository):
        repository.records.append(make_record())
        guarded = GuardedRepository(repository, timeout=1.0)
        assert (await guarded.find_latest(PHONE)).code == "123456"
        assert await guarded.count_since(PHONE, DEFAULT_START) == 1

    async def test_timeout_becomes_unavailable(self):
        guarded = GuardedRepository(SlowRepository(delay=1.0), timeout=0.05)
        with pytest.raises(RepositoryUnavailableError):
            await guarded.find_latest(PHONE)

    async def test_storage_error_becomes_unavailable(self):
        guarded = GuardedRepository(BrokenRepository(), timeout=1.0)
        with pytest.raises(RepositoryUnavailableError) as exc_info:
            await guarded.find_active(PHONE, DEFAULT_START)
        assert isinstance(exc_info.value.__cause__, ConnectionError)
