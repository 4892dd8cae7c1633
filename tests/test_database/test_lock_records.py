"""Tests for the lock record repository."""

import asyncio

import pytest

from lockgate.database.repositories import InsertOutcome
from tests.fixtures.admission import T1, T2


class TestLockRecordRepository:
    """Reference uniqueness is enforced by the database."""

    @pytest.mark.asyncio
    async def test_insert_and_find(self, records):
        outcome = await records.insert_if_absent(T1, "QmA", "bafyA")

        assert outcome is InsertOutcome.INSERTED
        record = await records.find_by_reference(T1)
        assert record.transaction_reference == T1
        assert record.content_identifier_v0 == "QmA"
        assert record.content_identifier_v1 == "bafyA"
        assert record.created_at is not None

    @pytest.mark.asyncio
    async def test_second_insert_is_rejected(self, records):
        await records.insert_if_absent(T1, "QmA", "bafyA")

        outcome = await records.insert_if_absent(T1, "QmB", "bafyB")

        assert outcome is InsertOutcome.ALREADY_EXISTS
        record = await records.find_by_reference(T1)
        assert record.content_identifier_v0 == "QmA"
        assert await records.count() == 1

    @pytest.mark.asyncio
    async def test_find_missing(self, records):
        assert await records.find_by_reference(T1) is None
        assert await records.find_by_content("QmA") is None

    @pytest.mark.asyncio
    async def test_find_by_content(self, records):
        await records.insert_if_absent(T1, "QmA", "bafyA")
        await records.insert_if_absent(T2, "QmB", "bafyB")

        record = await records.find_by_content("QmB")

        assert record.transaction_reference == T2

    @pytest.mark.asyncio
    async def test_concurrent_inserts_have_one_winner(self, records):
        outcomes = await asyncio.gather(
            *(records.insert_if_absent(T1, f"Qm{i}", f"bafy{i}") for i in range(8))
        )

        assert outcomes.count(InsertOutcome.INSERTED) == 1
        assert outcomes.count(InsertOutcome.ALREADY_EXISTS) == 7
        assert await records.count() == 1

    @pytest.mark.asyncio
    async def test_to_dict(self, records):
        await records.insert_if_absent(T1, "QmA", "bafyA")

        data = (await records.find_by_reference(T1)).to_dict()

        assert data["transactionReference"] == T1
        assert data["contentIdentifierV0"] == "QmA"
        assert data["contentIdentifierV1"] == "bafyA"
        assert "createdAt" in data
