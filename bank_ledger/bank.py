"""
Bank Module

The orchestrator that registers customers, opens accounts, generates
customer IDs and account numbers, and runs the monthly interest batch.
The bank holds no entity state of its own beyond its ID counters; every
customer and account lives in the ledger store.
"""

import re
import threading
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .accounts import (
    Account, AccountType, ChequeAccount, InvestmentAccount, SavingsAccount
)
from .currency import AmountLike, Money
from .customers import Customer
from .exceptions import (
    AccountNotFoundError, AccountRuleError, CustomerNotFoundError, ValidationError
)
from .ledger_store import LedgerStore
from .logging_config import get_logger
from .transactions import Transaction


PERIOD_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


@dataclass
class InterestRunSummary:
    """Outcome of one monthly interest batch"""
    accounts_visited: int = 0
    accounts_skipped: int = 0
    total_interest: Money = field(default_factory=Money.zero)
    period: Optional[str] = None
    already_processed: bool = False
    postings: List[Transaction] = field(default_factory=list, repr=False)

    @property
    def accounts_credited(self) -> int:
        """Accounts that actually received interest"""
        return len(self.postings)

    def to_record(self) -> Dict:
        return {
            "period": self.period,
            "accounts_visited": self.accounts_visited,
            "accounts_credited": self.accounts_credited,
            "accounts_skipped": self.accounts_skipped,
            "total_interest": str(self.total_interest.amount),
        }


class Bank:
    """
    Creates customers and accounts and runs batch interest.

    ID counters are seeded from the persisted customer and account counts,
    so a restarted bank continues numbering where the store left off.
    """

    def __init__(self, store: LedgerStore, bank_name: str = "Botswana Ledger Bank",
                 bank_code: str = "BWB", customer_id_start: int = 1000,
                 account_number_start: int = 10000):
        self.store = store
        self.bank_name = bank_name
        self.bank_code = bank_code
        self.logger = get_logger("bank_ledger.bank")

        self._id_lock = threading.Lock()
        self._interest_lock = threading.Lock()
        self._customer_counter = customer_id_start + store.count_customers()
        self._account_counter = account_number_start + store.count_accounts()

        self.logger.info(
            "Bank initialized",
            extra={"extra": {
                "bank_code": bank_code,
                "customers": store.count_customers(),
                "accounts": store.count_accounts(),
            }}
        )

    # Customers

    def register_customer(self, first_name: str, surname: str, address: str,
                          phone_number: Optional[str] = None,
                          email: Optional[str] = None) -> Customer:
        """
        Register a new customer under a fresh customer ID.

        Raises:
            ValidationError: If the first name, surname or address is blank
            PersistenceError: If the store rejects the customer
        """
        for value, label in ((first_name, "First name"), (surname, "Surname"), (address, "Address")):
            if value is None or not str(value).strip():
                raise ValidationError(f"{label} is required")

        customer = Customer(
            customer_id=self._next_customer_id(),
            first_name=first_name,
            surname=surname,
            address=address,
            phone_number=phone_number,
            email=email,
        )
        self.store.save_customer(customer)
        self.logger.info("Customer registered", extra={"resource": customer.customer_id})
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Customer with their accounts attached, or None"""
        return self.store.get_customer(customer_id)

    def get_all_customers(self) -> List[Customer]:
        return self.store.get_all_customers()

    def update_customer(self, customer: Customer) -> Customer:
        if not self.store.customer_exists(customer.customer_id):
            raise CustomerNotFoundError(customer.customer_id)
        self.store.save_customer(customer)
        return customer

    def delete_customer(self, customer_id: str) -> None:
        """
        Raises:
            CustomerNotFoundError: If the customer does not exist
            CustomerHasAccountsError: While the customer still owns accounts
        """
        if not self.store.customer_exists(customer_id):
            raise CustomerNotFoundError(customer_id)
        self.store.delete_customer(customer_id)

    def get_customer_count(self) -> int:
        return self.store.count_customers()

    # Accounts

    def open_savings_account(self, customer_id: str, initial_balance: AmountLike,
                             branch: str) -> SavingsAccount:
        return self._open(customer_id, lambda number, customer: SavingsAccount(
            number, initial_balance, branch, customer, self.store
        ))

    def open_investment_account(self, customer_id: str, initial_balance: AmountLike,
                                branch: str) -> InvestmentAccount:
        """
        Raises:
            CustomerNotFoundError: If the customer does not exist
            AccountRuleError: If the opening balance is below BWP 500.00
        """
        return self._open(customer_id, lambda number, customer: InvestmentAccount(
            number, initial_balance, branch, customer, self.store
        ))

    def open_cheque_account(self, customer_id: str, initial_balance: AmountLike, branch: str,
                            company_name: str, company_address: str) -> ChequeAccount:
        """
        Raises:
            CustomerNotFoundError: If the customer does not exist
            AccountRuleError: If the employment details are missing
        """
        return self._open(customer_id, lambda number, customer: ChequeAccount(
            number, initial_balance, branch, customer, self.store,
            company_name, company_address
        ))

    def get_account(self, account_number: str) -> Optional[Account]:
        return self.store.get_account(account_number)

    def get_all_accounts(self) -> List[Account]:
        return self.store.get_all_accounts()

    def get_account_count(self) -> int:
        return self.store.count_accounts()

    def count_accounts_by_type(self) -> Dict[AccountType, int]:
        return {account_type: self.store.count_by_type(account_type) for account_type in AccountType}

    def close_account(self, account_number: str) -> Account:
        """
        Remove an empty account. Its transactions stay in the store.

        Raises:
            AccountNotFoundError: If the account does not exist
            AccountRuleError: If the balance is not zero
        """
        account = self.store.get_account(account_number)
        if account is None:
            raise AccountNotFoundError(account_number)
        with self.store.account_lock(account_number):
            if not account.refresh_balance().is_zero():
                raise AccountRuleError("Account balance must be zero before closing")
            self.store.delete_account(account_number)
        self.logger.info("Account closed", extra={"resource": account_number})
        return account

    # Interest

    def process_monthly_interest(self, period: Optional[str] = None) -> InterestRunSummary:
        """
        Apply one period of interest to every interest-earning account.

        Accounts that do not earn interest are counted as skipped. With a
        `period` key (YYYY-MM) a period that already ran is refused and
        nothing is posted; without one every call posts interest again.

        Raises:
            ValidationError: If `period` is not in YYYY-MM form
            PersistenceError: If any write fails; no posting from the run is kept
        """
        if period is not None and not PERIOD_PATTERN.match(period):
            raise ValidationError(f"Interest period must be YYYY-MM, got {period!r}")

        with self._interest_lock:
            summary = InterestRunSummary(period=period)
            if period is not None and self.store.interest_run_exists(period):
                summary.already_processed = True
                self.logger.warning("Interest already processed for period",
                                    extra={"resource": period})
                return summary

            earning: List[Account] = []
            for customer in self.store.get_all_customers():
                for account in customer.get_accounts():
                    if account.earns_interest:
                        earning.append(account)
                    else:
                        summary.accounts_skipped += 1

            # Postings and the period marker commit or roll back as one unit
            with ExitStack() as locks:
                for number in sorted(account.account_number for account in earning):
                    locks.enter_context(self.store.account_lock(number))
                with self.store.batch("process interest for", period or "all accounts"):
                    for account in earning:
                        posting = account.apply_interest()
                        summary.accounts_visited += 1
                        if posting is not None:
                            summary.postings.append(posting)
                            summary.total_interest = summary.total_interest + posting.amount
                    if period is not None:
                        self.store.save_interest_run(period, summary.to_record())

        self.logger.info("Monthly interest processed", extra={"extra": summary.to_record()})
        return summary

    # Private helper methods

    def _open(self, customer_id: str,
              build: Callable[[str, Customer], Account]) -> Account:
        customer = self.store.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        account = build(self._next_account_number(), customer)
        self.store.save_account(account)
        customer.add_account(account)
        self.logger.info(
            "Account opened",
            extra={"resource": account.account_number,
                   "extra": {"customer_id": customer_id,
                             "account_type": account.account_type.value,
                             "balance": str(account.balance.amount)}}
        )
        return account

    def _next_customer_id(self) -> str:
        with self._id_lock:
            while True:
                customer_id = f"CUST-{self._customer_counter:04d}"
                self._customer_counter += 1
                if not self.store.customer_exists(customer_id):
                    return customer_id

    def _next_account_number(self) -> str:
        with self._id_lock:
            while True:
                account_number = f"{self.bank_code}-{self._account_counter:05d}"
                self._account_counter += 1
                if not self.store.account_exists(account_number):
                    return account_number

    def __str__(self) -> str:
        return (f"Bank[Name={self.bank_name}, Code={self.bank_code}, "
                f"Customers={self.get_customer_count()}, Accounts={self.get_account_count()}]")
