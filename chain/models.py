# app/chain/models.py
"""
Typed records decoded from FoalForge reads, and the transaction record shared
by the deploy transcript and the runtime foal client.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

HORSESHOE_SLOTS = 4

Number = Union[int, float]

STAT_FIELDS: Tuple[str, ...] = (
    "power",
    "acceleration",
    "stamina",
    "minSpeed",
    "maxSpeed",
    "luck",
    "curveBonus",
    "straightBonus",
)


class PerformanceStats(BaseModel):
    power: Number = 0
    acceleration: Number = 0
    stamina: Number = 0
    minSpeed: Number = 0
    maxSpeed: Number = 0
    luck: Number = 0
    curveBonus: Number = 0
    straightBonus: Number = 0


class Horseshoe(BaseModel):
    imgCategory: Number = 0
    imgNumber: Number = 0
    bonusStats: PerformanceStats = Field(default_factory=PerformanceStats)


class PendingFoal(BaseModel):
    imgCategory: Number
    imgNumber: Number
    stats: PerformanceStats
    totalPoints: Number
    extraPackagesBought: Number = 0
    horseshoes: List[Horseshoe] = Field(default_factory=list)


class FoalState(str, Enum):
    ABSENT = "Absent"
    SUBMITTING = "Submitting"
    CONFIRMING = "Confirming"
    PENDING = "Pending"


class TransactionRecord(BaseModel):
    """One submitted transaction: a deploy, a wiring call or a foal action."""
    action: str
    tx_hash: Optional[str] = None
    receipt: Optional[Any] = None
    gas_used: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
