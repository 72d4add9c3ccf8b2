"""
Transaction Record Module

Immutable records of single balance-affecting events. A transaction is only
ever produced as a side effect of an account mutation and is never updated
or deleted once stored; the set of transactions for an account is its
audit trail.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum
import uuid

from .currency import Money, Currency


class TransactionType(Enum):
    """Types of balance-affecting events"""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    INTEREST = "INTEREST"
    SALARY = "SALARY"

    @property
    def is_credit(self) -> bool:
        """Whether this type increases the balance"""
        return self is not TransactionType.WITHDRAWAL


@dataclass(frozen=True)
class Transaction:
    """
    Single ledger entry.

    `amount` is always positive; direction comes from `transaction_type`.
    `balance_after` is the account balance immediately after the event.
    """
    transaction_id: str
    account_number: str
    transaction_type: TransactionType
    amount: Money
    balance_after: Money
    description: str
    timestamp: datetime
    sequence: int = 0

    def __post_init__(self):
        if not self.amount.is_positive():
            raise ValueError("Transaction amount must be positive")
        if self.balance_after.is_negative():
            raise ValueError("Balance after a transaction cannot be negative")

    @classmethod
    def record(cls, account_number: str, transaction_type: TransactionType,
               amount: Money, balance_after: Money, description: str,
               timestamp: Optional[datetime] = None) -> 'Transaction':
        """Create a new transaction with a fresh ID"""
        return cls(
            transaction_id=f"TXN-{uuid.uuid4().hex[:16].upper()}",
            account_number=account_number,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=balance_after,
            description=description,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    @property
    def signed_amount(self) -> Money:
        """Amount with the sign implied by the transaction type"""
        return self.amount if self.transaction_type.is_credit else -self.amount

    @property
    def formatted_timestamp(self) -> str:
        return self.timestamp.strftime("%Y-%m-%d %H:%M:%S")

    def to_dict(self) -> Dict[str, Any]:
        """Persisted record shape"""
        return {
            "transaction_id": self.transaction_id,
            "account_number": self.account_number,
            "transaction_type": self.transaction_type.value,
            "amount": str(self.amount.amount),
            "balance_after": str(self.balance_after.amount),
            "currency": self.amount.currency.code,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        currency = Currency[data.get("currency", "BWP")]
        return cls(
            transaction_id=data["transaction_id"],
            account_number=data["account_number"],
            transaction_type=TransactionType(data["transaction_type"]),
            amount=Money.of(data["amount"], currency),
            balance_after=Money.of(data["balance_after"], currency),
            description=data.get("description") or "",
            timestamp=datetime.fromisoformat(data["timestamp"]),
            sequence=data.get("sequence", 0),
        )

    def __str__(self) -> str:
        return (f"[{self.formatted_timestamp}] {self.transaction_type.value}: "
                f"{self.amount} | Balance: {self.balance_after} | {self.description}")

    def detailed_report(self) -> str:
        """Multi-line report for statements"""
        return "\n".join([
            f"Transaction ID: {self.transaction_id}",
            f"Account Number: {self.account_number}",
            f"Type: {self.transaction_type.value}",
            f"Amount: {self.amount}",
            f"Balance After: {self.balance_after}",
            f"Date/Time: {self.formatted_timestamp}",
            f"Description: {self.description}",
        ]) + "\n"
