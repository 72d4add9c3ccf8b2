"""
Account Module

The closed set of account variants (Savings, Investment, Cheque) and their
deposit, withdrawal and interest rules.

There are two ways to get an Account object:

- calling a variant's constructor opens a new account and runs the opening
  rules (customer required, non-negative opening balance, investment
  minimum, cheque employment details);
- ``Account.from_record`` rehydrates a stored account and trusts the stored
  values, because opening rules only apply at opening time.

Every balance change goes through ``Account._post``, which holds the
account's write lock, re-reads the persisted balance, writes the new balance
and its transaction atomically through the ledger store, and only then
updates the in-memory object.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TYPE_CHECKING
from enum import Enum

from .currency import Money, Currency, AmountLike
from .exceptions import AccountRuleError
from .transactions import Transaction, TransactionType

if TYPE_CHECKING:
    from .customers import Customer
    from .ledger_store import LedgerStore


class AccountType(Enum):
    """Account variants; the value is the persisted discriminator"""
    SAVINGS = "Savings Account"
    INVESTMENT = "Investment Account"
    CHEQUE = "Cheque Account"


class Account(ABC):
    """
    Base class for all account variants.

    Subclasses set the class-level capabilities (`allows_withdrawal`,
    `earns_interest`, `interest_rate`) and may add opening rules.
    """

    account_type: AccountType
    allows_withdrawal: bool = True
    earns_interest: bool = False
    interest_rate: Decimal = Decimal('0')

    def __init__(self, account_number: str, initial_balance: AmountLike, branch: str,
                 customer: 'Customer', store: 'LedgerStore'):
        if customer is None:
            raise AccountRuleError("Account cannot exist without a customer")
        try:
            opening_balance = Money.of(initial_balance)
        except ValueError:
            raise AccountRuleError("Initial balance must be a number")
        if opening_balance.is_negative():
            raise AccountRuleError("Initial balance cannot be negative")

        self._assign(
            account_number=account_number,
            balance=opening_balance,
            branch=branch,
            customer=customer,
            store=store,
            date_opened=datetime.now(timezone.utc),
        )

    def _assign(self, account_number: str, balance: Money, branch: str,
                customer: 'Customer', store: 'LedgerStore', date_opened: datetime) -> None:
        self.account_number = account_number
        self._balance = balance
        self.branch = branch
        self.customer = customer
        self.date_opened = date_opened
        self._store = store
        self.last_transaction: Optional[Transaction] = None

    # Rehydration

    @classmethod
    def from_record(cls, data: Dict[str, Any], customer: 'Customer',
                    store: 'LedgerStore') -> 'Account':
        """
        Rebuild a stored account as its concrete variant.

        Opening rules are not applied: an investment account that has since
        dropped below the opening minimum still loads.
        """
        variant = ACCOUNT_VARIANTS[AccountType(data["account_type"])]
        currency = Currency[data.get("currency", "BWP")]

        account = variant.__new__(variant)
        account._assign(
            account_number=data["account_number"],
            balance=Money.of(data["balance"], currency),
            branch=data.get("branch") or "",
            customer=customer,
            store=store,
            date_opened=datetime.fromisoformat(data["date_opened"]),
        )
        account._restore_details(data)
        return account

    def _restore_details(self, data: Dict[str, Any]) -> None:
        """Hook for variant-specific stored fields"""
        pass

    def to_record(self, balance: Optional[Money] = None) -> Dict[str, Any]:
        """Persisted record shape; `balance` overrides the in-memory balance"""
        balance = balance if balance is not None else self._balance
        return {
            "account_number": self.account_number,
            "customer_id": self.customer.customer_id,
            "account_type": self.account_type.value,
            "balance": str(balance.amount),
            "currency": balance.currency.code,
            "branch": self.branch,
            "date_opened": self.date_opened.isoformat(),
            "company_name": None,
            "company_address": None,
        }

    # Queries

    @property
    def balance(self) -> Money:
        return self._balance

    @property
    def customer_id(self) -> str:
        return self.customer.customer_id

    def refresh_balance(self) -> Money:
        """Reload the balance from the store, if the account is stored"""
        persisted = self._store.load_balance(self.account_number)
        if persisted is not None:
            self._balance = persisted
        return self._balance

    @abstractmethod
    def calculate_interest(self) -> Money:
        """Interest for one period on the current balance; never mutates"""

    def withdrawal_denial_reason(self, amount: AmountLike) -> Optional[str]:
        """Why a withdrawal of `amount` would be refused, or None if allowed"""
        if not self.allows_withdrawal:
            return f"Withdrawals are not permitted on {self.account_type.value}s"
        try:
            money = Money.of(amount)
        except ValueError:
            return "Withdrawal amount must be a number"
        if not money.is_positive():
            return "Withdrawal amount must be positive"
        if money > self._balance:
            return "Insufficient balance for withdrawal"
        return None

    def get_transaction_history(self) -> List[Transaction]:
        """All transactions of this account, most recent first"""
        return self._store.get_transaction_history(self.account_number)

    # Mutations

    def deposit(self, amount: AmountLike) -> bool:
        money = _positive_money(amount)
        if money is None:
            return False
        return self._post(TransactionType.DEPOSIT, money, "Deposit to account") is not None

    def withdraw(self, amount: AmountLike) -> bool:
        if not self.allows_withdrawal:
            return False
        with self._store.account_lock(self.account_number):
            self.refresh_balance()
            if self.withdrawal_denial_reason(amount) is not None:
                return False
            transaction = self._post(
                TransactionType.WITHDRAWAL, Money.of(amount),
                f"Withdrawal from {self.account_type.value}"
            )
            return transaction is not None

    def apply_interest(self) -> Optional[Transaction]:
        """
        Credit one period of interest.

        Returns the INTEREST transaction, or None when the interest rounds
        to zero (no transaction is written in that case).
        """
        with self._store.account_lock(self.account_number):
            self.refresh_balance()
            interest = self.calculate_interest()
            if not interest.is_positive():
                return None
            return self._post(TransactionType.INTEREST, interest, "Monthly interest applied")

    def _post(self, transaction_type: TransactionType, amount: Money,
              description: str) -> Optional[Transaction]:
        """
        Apply one balance change and persist it with its transaction.

        Returns None if a debit would take the balance below zero. Raises
        PersistenceError if the store rejects the write, in which case the
        in-memory balance is left untouched.
        """
        with self._store.account_lock(self.account_number):
            current = self.refresh_balance()
            if transaction_type.is_credit:
                new_balance = current + amount
            else:
                new_balance = current - amount
            if new_balance.is_negative():
                return None

            transaction = Transaction.record(
                account_number=self.account_number,
                transaction_type=transaction_type,
                amount=amount,
                balance_after=new_balance,
                description=description,
            )
            stored = self._store.record_mutation(self, new_balance, transaction)
            self._balance = new_balance
            self.last_transaction = stored
            return stored

    def __eq__(self, other) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.account_number == other.account_number

    def __hash__(self) -> int:
        return hash(self.account_number)

    def __str__(self) -> str:
        return (f"{self.account_type.value}[Number={self.account_number}, "
                f"Balance={self._balance}, Customer={self.customer.full_name}]")


class SavingsAccount(Account):
    """Deposits only; 0.05% interest per period"""

    account_type = AccountType.SAVINGS
    allows_withdrawal = False
    earns_interest = True
    interest_rate = Decimal('0.0005')

    def calculate_interest(self) -> Money:
        return self._balance * self.interest_rate


class InvestmentAccount(Account):
    """Deposits and withdrawals; BWP 500.00 opening minimum; 5% interest per period"""

    account_type = AccountType.INVESTMENT
    earns_interest = True
    interest_rate = Decimal('0.05')
    minimum_opening_balance = Money(Decimal('500.00'))

    def calculate_interest(self) -> Money:
        return self._balance * self.interest_rate

    def __init__(self, account_number: str, initial_balance: AmountLike, branch: str,
                 customer: 'Customer', store: 'LedgerStore'):
        super().__init__(account_number, initial_balance, branch, customer, store)
        if self._balance < self.minimum_opening_balance:
            raise AccountRuleError(
                f"Investment Account requires minimum opening balance of "
                f"{self.minimum_opening_balance}"
            )


class ChequeAccount(Account):
    """
    Salary account. Deposits and withdrawals, no interest, and proof of
    employment (company name and address) is required to open it.
    """

    account_type = AccountType.CHEQUE

    def __init__(self, account_number: str, initial_balance: AmountLike, branch: str,
                 customer: 'Customer', store: 'LedgerStore',
                 company_name: str, company_address: str):
        super().__init__(account_number, initial_balance, branch, customer, store)
        if _blank(company_name) or _blank(company_address):
            raise AccountRuleError(
                "Cheque Account requires valid employment information (company name and address)"
            )
        self.company_name = company_name.strip()
        self.company_address = company_address.strip()

    def _restore_details(self, data: Dict[str, Any]) -> None:
        self.company_name = data.get("company_name") or ""
        self.company_address = data.get("company_address") or ""

    def to_record(self, balance: Optional[Money] = None) -> Dict[str, Any]:
        record = super().to_record(balance)
        record["company_name"] = self.company_name
        record["company_address"] = self.company_address
        return record

    def calculate_interest(self) -> Money:
        return Money.zero(self._balance.currency)

    def credit_salary(self, amount: AmountLike, employer_reference: str) -> bool:
        money = _positive_money(amount)
        if money is None:
            return False
        description = f"Salary credit from {self.company_name} (Ref: {employer_reference})"
        return self._post(TransactionType.SALARY, money, description) is not None

    def update_employment_info(self, company_name: Optional[str] = None,
                               company_address: Optional[str] = None) -> None:
        """Replace employer details; blank values leave the field unchanged"""
        if not _blank(company_name):
            self.company_name = company_name.strip()
        if not _blank(company_address):
            self.company_address = company_address.strip()
        self._store.save_account(self)

    def __str__(self) -> str:
        return (f"ChequeAccount[Number={self.account_number}, Balance={self._balance}, "
                f"Employer={self.company_name}]")


ACCOUNT_VARIANTS: Dict[AccountType, Type[Account]] = {
    AccountType.SAVINGS: SavingsAccount,
    AccountType.INVESTMENT: InvestmentAccount,
    AccountType.CHEQUE: ChequeAccount,
}


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _positive_money(amount: AmountLike) -> Optional[Money]:
    try:
        money = Money.of(amount)
    except ValueError:
        return None
    return money if money.is_positive() else None
