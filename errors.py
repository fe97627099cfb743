# app/errors.py
"""
Error taxonomy shared by the ops scripts (deploy / verify) and the runtime
foal client.

ConfigurationError   -> fatal, actionable diagnostic (missing signer, missing address)
NetworkError         -> RPC/provider failure, surfaced to the caller, never retried
ContractRevertError  -> a setter/getter reverted or a verification check failed
TransactionError     -> a user-facing transaction could not be signed or confirmed

Decoding problems are never raised: bad fields degrade to 0.
"""
from __future__ import annotations

from typing import Any, Optional


class SpeedHorsesError(Exception):
    """Base class for every error raised on purpose by this app."""


class ConfigurationError(SpeedHorsesError):
    pass


class NetworkError(SpeedHorsesError):
    pass


class InclusionTimeoutError(NetworkError):
    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"Transaction {tx_hash} was submitted but not included after {timeout:g}s. "
            "Check the transaction on the explorer."
        )


class ContractRevertError(SpeedHorsesError):
    pass


class VerificationError(ContractRevertError):
    def __init__(self, label: str, expected: Any, received: Any):
        self.label = label
        self.expected = expected
        self.received = received
        super().__init__(f"{label}: expected {expected!r}, received {received!r}")


class TransactionError(SpeedHorsesError):
    def __init__(self, record, cause: Optional[BaseException] = None):
        self.record = record
        self.cause = cause
        super().__init__(f"{record.action} failed: {record.error}")
