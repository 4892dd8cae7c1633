"""Ledger transaction models parsed from explorer payloads."""

from pydantic import BaseModel, ConfigDict, Field


class TimelockInfo(BaseModel):
    """Lock metadata attached to a time-locked output."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lock_duration_blocks: int = Field(alias="locktime")


class TransactionOutput(BaseModel):
    """A single transaction output. ``lock`` is only set on time-locked outputs."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    amount: int
    lock: TimelockInfo | None = Field(default=None, alias="timelockUtxoInfo")

    def matches(self, amount: int, lock_duration_blocks: int) -> bool:
        """Exact match on both the amount and the lock duration."""
        return (
            self.lock is not None
            and self.amount == amount
            and self.lock.lock_duration_blocks == lock_duration_blocks
        )


class LedgerTransaction(BaseModel):
    """Read-only view of a ledger transaction."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    txid: str = ""
    timestamp: float
    outputs: list[TransactionOutput] = Field(default_factory=list, alias="vout")

    def has_lock_output(self, amount: int, lock_duration_blocks: int) -> bool:
        return any(o.matches(amount, lock_duration_blocks) for o in self.outputs)
