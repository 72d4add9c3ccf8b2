"""
Customer Module

Customer identity and contact details, and the customer's side of the
customer/account relationship. Accounts are attached when opened (or when
loaded from the store) and never detached while they exist.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import re

if TYPE_CHECKING:
    from .accounts import Account


NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
EMAIL_PATTERN = re.compile(r'^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$')


def is_valid_name(name: Optional[str]) -> bool:
    """Letters, spaces, apostrophes and hyphens only"""
    if name is None or not name.strip():
        return False
    return NAME_PATTERN.match(name) is not None


def is_valid_email(email: Optional[str]) -> bool:
    if email is None or not email.strip():
        return False
    return EMAIL_PATTERN.match(email.strip()) is not None


def is_valid_phone(phone: Optional[str]) -> bool:
    """7 to 15 digits once punctuation and spaces are ignored"""
    if phone is None or not phone.strip():
        return False
    digits = re.sub(r'[^0-9]', '', phone)
    return 7 <= len(digits) <= 15


@dataclass
class Customer:
    """
    Bank customer. `customer_id` is assigned at registration and never
    changes; `address` is required, phone and email are optional.
    """
    customer_id: str
    first_name: str
    surname: str
    address: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accounts: List['Account'] = field(default_factory=list, repr=False, compare=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.surname}"

    def add_account(self, account: 'Account') -> None:
        """Attach an account and point it back at this customer"""
        if account is None or account in self.accounts:
            return
        self.accounts.append(account)
        account.customer = self

    def get_accounts(self) -> List['Account']:
        return list(self.accounts)

    def get_account_by_number(self, account_number: str) -> Optional['Account']:
        for account in self.accounts:
            if account.account_number == account_number:
                return account
        return None

    def to_record(self) -> Dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "first_name": self.first_name,
            "surname": self.surname,
            "address": self.address,
            "phone_number": self.phone_number,
            "email": self.email,
            "registered_at": self.registered_at.isoformat(),
        }

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> 'Customer':
        return cls(
            customer_id=data["customer_id"],
            first_name=data["first_name"],
            surname=data["surname"],
            address=data.get("address") or "",
            phone_number=data.get("phone_number"),
            email=data.get("email"),
            registered_at=datetime.fromisoformat(data["registered_at"]),
        )

    def __str__(self) -> str:
        return f"Customer[ID={self.customer_id}, Name={self.full_name}, Accounts={len(self.accounts)}]"
