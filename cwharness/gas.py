"""Gas pricing and chain identifiers."""

from dataclasses import dataclass
from enum import Enum
from typing import NewType

ChainId = NewType("ChainId", str)
NodeAddress = NewType("NodeAddress", str)
TxId = NewType("TxId", str)


class GasTier(str, Enum):
    """Named gas price tiers; each backend defines the actual prices."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class GasPrice:
    """Denomination-qualified price per gas unit."""
    amount: int | float
    denom: str

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"

    def units(self, units: int) -> "Gas":
        return Gas(units=units, price=self)


@dataclass(frozen=True)
class Gas:
    """Gas limit together with the price paid per unit."""
    units: int
    price: GasPrice


@dataclass(frozen=True)
class GasPrices:
    """The three price tiers of a backend."""
    low: GasPrice
    medium: GasPrice
    high: GasPrice

    @classmethod
    def of(cls, low: int | float, medium: int | float, high: int | float, denom: str) -> "GasPrices":
        return cls(GasPrice(low, denom), GasPrice(medium, denom), GasPrice(high, denom))

    def tier(self, tier: GasTier) -> GasPrice:
        return getattr(self, GasTier(tier).value)
