"""
Ledger Store Module

Durable storage and retrieval of customers, accounts and transactions on top
of a StorageInterface backend. The store is the only path through which a
balance change becomes durable: ``record_mutation`` writes the new balance
and its transaction in one storage transaction.

Backend failures on both reads and writes leave the store as
``PersistenceError``; callers never see a raw ``sqlite3.Error`` or ``OSError``.
"""

import dataclasses
import itertools
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from .accounts import Account, AccountType
from .currency import Money
from .customers import Customer
from .exceptions import CustomerHasAccountsError, DuplicateTransactionError, ValidationError
from .logging_config import get_logger
from .storage import StorageInterface, storage_errors
from .transactions import Transaction, TransactionType
from .users import UserManager


class LedgerStore:
    """
    Persistence facade for the ledger's record kinds.

    Accounts are rehydrated through ``Account.from_record`` and always come
    back attached to their customer.
    """

    CUSTOMERS = "customers"
    ACCOUNTS = "accounts"
    TRANSACTIONS = "transactions"
    USERS = UserManager.table_name
    INTEREST_RUNS = "interest_runs"

    TABLES = (CUSTOMERS, ACCOUNTS, TRANSACTIONS, USERS, INTEREST_RUNS)

    def __init__(self, storage: StorageInterface, logger=None):
        self.storage = storage
        self.logger = logger or get_logger("bank_ledger.store")
        self._account_locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._sequence_lock = threading.Lock()
        # Rolled-back writes leave gaps, so continue after the highest stored sequence
        with self._retrieving("load", self.TRANSACTIONS):
            last = max((data.get("sequence") or 0 for data in self.storage.load_all(self.TRANSACTIONS)),
                       default=0)
        self._sequence = itertools.count(last + 1)

    def initialize_schema(self, admin_user_id: str = "admin",
                          admin_username: str = "Administrator",
                          admin_password: str = "admin123") -> bool:
        """
        Create every table if missing and seed the default administrator.

        Safe to run on every start; returns True only when the admin was
        created by this call.
        """
        with self._retrieving("create tables"):
            for table in self.TABLES:
                self.storage.create_table(table)
        return UserManager(self.storage).ensure_default_admin(
            admin_user_id, admin_username, admin_password
        )

    # Locking

    def account_lock(self, account_number: str) -> threading.RLock:
        """Write-serialization lock for one account number"""
        with self._locks_guard:
            lock = self._account_locks.get(account_number)
            if lock is None:
                lock = threading.RLock()
                self._account_locks[account_number] = lock
            return lock

    @contextmanager
    def batch(self, action: str, resource: str):
        """
        One storage transaction around several store writes.

        Writes made inside the block (including ``record_mutation`` calls)
        are committed together or rolled back together. Take any account
        locks before entering.
        """
        with self._persisting(action, resource):
            yield

    # Customers

    def save_customer(self, customer: Customer) -> None:
        with self._persisting("save customer", customer.customer_id):
            self.storage.save(self.CUSTOMERS, customer.customer_id, customer.to_record())
        self.logger.debug("Customer saved", extra={"resource": customer.customer_id})

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Load a customer with all of their accounts attached"""
        with self._retrieving("load customer", customer_id):
            data = self.storage.load(self.CUSTOMERS, customer_id)
            if not data:
                return None
            customer = Customer.from_record(data)
            self._attach_accounts(
                [customer], self.storage.find(self.ACCOUNTS, {"customer_id": customer_id})
            )
        return customer

    def get_all_customers(self) -> List[Customer]:
        """All customers ordered by customer ID, accounts attached"""
        with self._retrieving("load customers"):
            customers = [Customer.from_record(data) for data in self.storage.load_all(self.CUSTOMERS)]
            customers.sort(key=lambda c: c.customer_id)
            self._attach_accounts(customers, self.storage.load_all(self.ACCOUNTS))
        return customers

    def customer_exists(self, customer_id: str) -> bool:
        with self._retrieving("look up customer", customer_id):
            return self.storage.exists(self.CUSTOMERS, customer_id)

    def count_customers(self) -> int:
        with self._retrieving("count customers"):
            return self.storage.count(self.CUSTOMERS)

    def delete_customer(self, customer_id: str) -> bool:
        """
        Remove a customer record.

        Raises:
            CustomerHasAccountsError: If any account still references the customer
        """
        with self._persisting("delete customer", customer_id):
            if self.storage.find(self.ACCOUNTS, {"customer_id": customer_id}):
                raise CustomerHasAccountsError("Cannot delete customer with existing accounts")
            deleted = self.storage.delete(self.CUSTOMERS, customer_id)
        if deleted:
            self.logger.info("Customer deleted", extra={"resource": customer_id})
        return deleted

    def search_customers_by_name(self, term: str) -> List[Customer]:
        """Case-insensitive substring match on first name or surname"""
        if term is None or not term.strip():
            return []
        needle = term.strip().lower()
        return [
            customer for customer in self.get_all_customers()
            if needle in customer.first_name.lower() or needle in customer.surname.lower()
        ]

    # Accounts

    def save_account(self, account: Account) -> None:
        """Insert or update an account, keyed by account number"""
        with self._persisting("save account", account.account_number):
            self.storage.save(self.ACCOUNTS, account.account_number, account.to_record())
        self.logger.debug("Account saved", extra={"resource": account.account_number})

    def get_account(self, account_number: str) -> Optional[Account]:
        with self._retrieving("load account", account_number):
            data = self.storage.load(self.ACCOUNTS, account_number)
        if not data:
            return None
        customer = self.get_customer(data["customer_id"])
        if customer is None:
            self.logger.warning(
                "Account references a missing customer",
                extra={"resource": account_number, "extra": {"customer_id": data["customer_id"]}}
            )
            return None
        return customer.get_account_by_number(account_number)

    def account_exists(self, account_number: str) -> bool:
        with self._retrieving("look up account", account_number):
            return self.storage.exists(self.ACCOUNTS, account_number)

    def get_customer_accounts(self, customer_id: str) -> List[Account]:
        customer = self.get_customer(customer_id)
        return customer.get_accounts() if customer else []

    def get_all_accounts(self) -> List[Account]:
        accounts: List[Account] = []
        for customer in self.get_all_customers():
            accounts.extend(customer.get_accounts())
        accounts.sort(key=lambda a: a.account_number)
        return accounts

    def count_accounts(self) -> int:
        with self._retrieving("count accounts"):
            return self.storage.count(self.ACCOUNTS)

    def count_by_type(self, account_type: Union[AccountType, str]) -> int:
        """
        Count accounts of one variant; accepts the enum, its name or its discriminator.

        Raises:
            ValidationError: If `account_type` names no variant
        """
        if not isinstance(account_type, AccountType):
            account_type = _account_type(account_type)
        with self._retrieving("count accounts of type", account_type.value):
            return len(self.storage.find(self.ACCOUNTS, {"account_type": account_type.value}))

    def load_balance(self, account_number: str) -> Optional[Money]:
        """Current persisted balance, or None for an account not stored yet"""
        with self._retrieving("load balance of", account_number):
            data = self.storage.load(self.ACCOUNTS, account_number)
            if not data:
                return None
            return Money.of(data["balance"])

    def delete_account(self, account_number: str) -> bool:
        """Remove an account record; its transactions stay as the audit trail"""
        with self._persisting("delete account", account_number):
            deleted = self.storage.delete(self.ACCOUNTS, account_number)
        if deleted:
            self.logger.info("Account deleted", extra={"resource": account_number})
        return deleted

    # Transactions

    def record_mutation(self, account: Account, new_balance: Money,
                        transaction: Transaction) -> Transaction:
        """
        Persist a balance change together with its transaction.

        Either both the account row and the transaction row are written or
        neither is. Returns the stored transaction (with its sequence number).
        """
        with self._persisting("record transaction on", account.account_number):
            self.storage.save(
                self.ACCOUNTS, account.account_number, account.to_record(balance=new_balance)
            )
            stored = self._insert_transaction(transaction)
        self.logger.debug(
            "Balance change recorded",
            extra={
                "resource": account.account_number,
                "action": transaction.transaction_type.value,
                "extra": {"amount": str(transaction.amount.amount),
                          "balance_after": str(new_balance.amount)},
            }
        )
        return stored

    def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Insert a transaction record.

        Raises:
            DuplicateTransactionError: If the transaction ID is already stored
        """
        with self._persisting("save transaction", transaction.transaction_id):
            return self._insert_transaction(transaction)

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        with self._retrieving("load transaction", transaction_id):
            data = self.storage.load(self.TRANSACTIONS, transaction_id)
            if data:
                return Transaction.from_dict(data)
            return None

    def get_transaction_history(self, account_number: str) -> List[Transaction]:
        """All transactions of an account, most recent first"""
        with self._retrieving("load transactions of", account_number):
            return self._newest_first(
                self.storage.find(self.TRANSACTIONS, {"account_number": account_number})
            )

    def get_transactions_in_range(self, account_number: str, start: datetime,
                                  end: datetime) -> List[Transaction]:
        """Transactions with start <= timestamp <= end, most recent first"""
        start, end = _as_utc(start), _as_utc(end)
        return [
            txn for txn in self.get_transaction_history(account_number)
            if start <= txn.timestamp <= end
        ]

    def get_transactions_by_type(self, account_number: str,
                                 transaction_type: TransactionType) -> List[Transaction]:
        with self._retrieving("load transactions of", account_number):
            return self._newest_first(self.storage.find(self.TRANSACTIONS, {
                "account_number": account_number,
                "transaction_type": transaction_type.value,
            }))

    def get_recent_transactions(self, account_number: str, limit: int = 10) -> List[Transaction]:
        return self.get_transaction_history(account_number)[:max(limit, 0)]

    def get_all_transactions(self) -> List[Transaction]:
        with self._retrieving("load transactions"):
            return self._newest_first(self.storage.load_all(self.TRANSACTIONS))

    def get_total_deposits(self, account_number: str) -> Money:
        return _total(self.get_transactions_by_type(account_number, TransactionType.DEPOSIT))

    def get_total_withdrawals(self, account_number: str) -> Money:
        return _total(self.get_transactions_by_type(account_number, TransactionType.WITHDRAWAL))

    def get_transaction_count(self, account_number: str) -> int:
        with self._retrieving("count transactions of", account_number):
            return len(self.storage.find(self.TRANSACTIONS, {"account_number": account_number}))

    # Interest runs

    def interest_run_exists(self, period: str) -> bool:
        with self._retrieving("look up interest run", period):
            return self.storage.exists(self.INTEREST_RUNS, period)

    def save_interest_run(self, period: str, summary: Dict) -> None:
        with self._persisting("save interest run", period):
            self.storage.save(self.INTEREST_RUNS, period, dict(summary, period=period))

    # Private helper methods

    @contextmanager
    def _persisting(self, action: str, resource: str):
        """Run storage writes atomically; backend failures become PersistenceError"""
        with storage_errors(self.logger, action, resource):
            with self.storage.atomic():
                yield

    def _retrieving(self, action: str, resource: Optional[str] = None):
        """Backend failures on reads become PersistenceError"""
        return storage_errors(self.logger, action, resource)

    def _insert_transaction(self, transaction: Transaction) -> Transaction:
        if self.storage.exists(self.TRANSACTIONS, transaction.transaction_id):
            raise DuplicateTransactionError(
                f"Transaction {transaction.transaction_id} already recorded"
            )
        with self._sequence_lock:
            sequence = next(self._sequence)
        stored = dataclasses.replace(transaction, sequence=sequence)
        self.storage.save(self.TRANSACTIONS, stored.transaction_id, stored.to_dict())
        return stored

    def _attach_accounts(self, customers: List[Customer], records: Iterable[Dict]) -> None:
        by_id = {customer.customer_id: customer for customer in customers}
        for data in sorted(records, key=lambda r: r["account_number"]):
            customer = by_id.get(data["customer_id"])
            if customer is not None:
                customer.add_account(Account.from_record(data, customer, self))

    @staticmethod
    def _newest_first(records: Iterable[Dict]) -> List[Transaction]:
        transactions = [Transaction.from_dict(data) for data in records]
        transactions.sort(key=lambda t: (t.timestamp, t.sequence), reverse=True)
        return transactions


def _account_type(value: str) -> AccountType:
    """Resolve a discriminator ("Savings Account") or a name ("savings")"""
    try:
        return AccountType(value)
    except ValueError:
        pass
    try:
        return AccountType[str(value).upper()]
    except KeyError:
        raise ValidationError(f"Unknown account type: {value}") from None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _total(transactions: Iterable[Transaction]) -> Money:
    total = Money.zero()
    for txn in transactions:
        total = total + txn.amount
    return total
