"""
Account, Customer and User Services

The boundary the outside world calls. Every operation has the same shape:

1. check the permission gate for the operation name;
2. validate input in a fixed order (required fields in declaration order,
   then formats, then business minimums);
3. delegate to the Bank or the Account;
4. return a result object carrying either the produced entity or the
   reason for failure.

Nothing raises past this layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .accounts import Account, AccountType, ChequeAccount, InvestmentAccount
from .bank import Bank
from .currency import AmountLike, Money
from .customers import Customer, is_valid_email, is_valid_name, is_valid_phone
from .exceptions import (
    AccountNotFoundError, AccountRuleError, CustomerHasAccountsError, EntityNotFoundError,
    LedgerError, PersistenceError, ValidationError
)
from .ledger_store import LedgerStore
from .logging_config import get_logger, log_action
from .transactions import Transaction
from .users import Permission, PermissionGate, Role, SessionContext, User, UserManager


class ErrorKind(Enum):
    """Why an operation failed"""
    PERMISSION = "permission"
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    NOT_FOUND = "not_found"
    PERSISTENCE = "persistence"


@dataclass
class ServiceResult:
    success: bool
    message: str
    error: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, message: str, **fields):
        return cls(True, message, None, **fields)

    @classmethod
    def fail(cls, error: ErrorKind, message: str, **fields):
        return cls(False, message, error, **fields)


@dataclass
class AccountResult(ServiceResult):
    account: Optional[Account] = None


@dataclass
class TransactionResult(ServiceResult):
    new_balance: Optional[Money] = None
    transaction: Optional[Transaction] = None


@dataclass
class BalanceResult(ServiceResult):
    balance: Optional[Money] = None
    account: Optional[Account] = None


@dataclass
class HistoryResult(ServiceResult):
    transactions: List[Transaction] = field(default_factory=list)


@dataclass
class InterestResult(ServiceResult):
    accounts_processed: int = 0
    accounts_skipped: int = 0
    total_interest: Money = field(default_factory=Money.zero)
    period: Optional[str] = None


@dataclass
class CustomerResult(ServiceResult):
    customer: Optional[Customer] = None


@dataclass
class UserResult(ServiceResult):
    user: Optional[User] = None


@dataclass
class CustomerListResult(ServiceResult):
    customers: List[Customer] = field(default_factory=list)


@dataclass
class AccountListResult(ServiceResult):
    accounts: List[Account] = field(default_factory=list)


@dataclass
class CountResult(ServiceResult):
    count: int = 0


@dataclass
class StatisticsResult(ServiceResult):
    savings_count: int = 0
    investment_count: int = 0
    cheque_count: int = 0

    @property
    def total_count(self) -> int:
        return self.savings_count + self.investment_count + self.cheque_count


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def _parse_money(value: AmountLike) -> Optional[Money]:
    try:
        return Money.of(value)
    except ValueError:
        return None


def _plain(money: Money) -> str:
    """'BWP 1500.00' style used in service messages"""
    return f"{money.currency.code} {money.amount:.{money.currency.precision}f}"


def _failure(result_cls, exc: LedgerError, persistence_message: str):
    """Turn a ledger exception into a failure result"""
    if isinstance(exc, EntityNotFoundError):
        return result_cls.fail(ErrorKind.NOT_FOUND, str(exc))
    if isinstance(exc, (AccountRuleError, CustomerHasAccountsError)):
        return result_cls.fail(ErrorKind.BUSINESS_RULE, str(exc))
    if isinstance(exc, ValidationError):
        return result_cls.fail(ErrorKind.VALIDATION, str(exc))
    return result_cls.fail(ErrorKind.PERSISTENCE, persistence_message)


class _Service:
    """Shared plumbing: permission gate and structured action logging"""

    logger_name = "bank_ledger.services"

    def __init__(self, gate: PermissionGate, logger=None):
        self.gate = gate
        self.logger = logger or get_logger(self.logger_name)

    @property
    def caller_id(self) -> Optional[str]:
        return getattr(self.gate, "user_id", None)

    def _allowed(self, permission: Permission) -> bool:
        if self.gate.has_permission(permission.value):
            return True
        log_action(self.logger, "warning", "Permission denied",
                   user_id=self.caller_id, action=permission.value)
        return False

    def _log(self, level: str, message: str, action: str,
             resource: Optional[str] = None, extra: Optional[dict] = None) -> None:
        log_action(self.logger, level, message, user_id=self.caller_id,
                   action=action, resource=resource, extra=extra)

    def _log_failure(self, action: str, resource: Optional[str], exc: LedgerError) -> None:
        if not isinstance(exc, PersistenceError):
            self._log("info", str(exc), action, resource)
        else:
            self.logger.error(
                f"{action} failed",
                exc_info=exc,
                extra={"user_id": self.caller_id, "action": action, "resource": resource}
            )


class AccountService(_Service):
    """Account opening, balance movements, inquiries and the interest run"""

    def __init__(self, bank: Bank, store: LedgerStore, gate: PermissionGate, logger=None):
        super().__init__(gate, logger)
        self.bank = bank
        self.store = store

    # Opening

    def open_savings_account(self, customer_id: str, initial_balance: AmountLike,
                             branch: str) -> AccountResult:
        failure = self._check_opening(customer_id, initial_balance, branch)
        if failure:
            return failure
        return self._open(AccountType.SAVINGS, customer_id, lambda: self.bank.open_savings_account(
            customer_id.strip(), initial_balance, branch.strip()
        ))

    def open_investment_account(self, customer_id: str, initial_balance: AmountLike,
                                branch: str) -> AccountResult:
        failure = self._check_opening(customer_id, initial_balance, branch)
        if failure:
            return failure
        minimum = InvestmentAccount.minimum_opening_balance
        if _parse_money(initial_balance) < minimum:
            return AccountResult.fail(
                ErrorKind.BUSINESS_RULE,
                f"Investment Account requires minimum opening balance of {_plain(minimum)}"
            )
        return self._open(AccountType.INVESTMENT, customer_id, lambda: self.bank.open_investment_account(
            customer_id.strip(), initial_balance, branch.strip()
        ))

    def open_cheque_account(self, customer_id: str, initial_balance: AmountLike, branch: str,
                            company_name: str, company_address: str) -> AccountResult:
        failure = self._check_opening(customer_id, initial_balance, branch)
        if failure:
            return failure
        if _blank(company_name):
            return AccountResult.fail(ErrorKind.BUSINESS_RULE,
                                      "Company name is required for Cheque Account")
        if _blank(company_address):
            return AccountResult.fail(ErrorKind.BUSINESS_RULE,
                                      "Company address is required for Cheque Account")
        return self._open(AccountType.CHEQUE, customer_id, lambda: self.bank.open_cheque_account(
            customer_id.strip(), initial_balance, branch.strip(),
            company_name.strip(), company_address.strip()
        ))

    # Balance movements

    def deposit(self, account_number: str, amount: AmountLike) -> TransactionResult:
        if not self._allowed(Permission.DEPOSIT):
            return TransactionResult.fail(ErrorKind.PERMISSION,
                                          "You don't have permission to make deposits")
        if _blank(account_number):
            return TransactionResult.fail(ErrorKind.VALIDATION, "Account number is required")
        money = _parse_money(amount)
        if money is None:
            return TransactionResult.fail(ErrorKind.VALIDATION, "Deposit amount must be a number")
        if not money.is_positive():
            return TransactionResult.fail(ErrorKind.VALIDATION, "Deposit amount must be positive")

        account_number = account_number.strip()
        try:
            account = self._find_account(account_number)
            if not account.deposit(money):
                return TransactionResult.fail(ErrorKind.BUSINESS_RULE, "Deposit failed",
                                              new_balance=account.balance)
        except LedgerError as exc:
            self._log_failure("DEPOSIT", account_number, exc)
            return _failure(TransactionResult, exc, "Failed to save transaction to database")

        self._log("info", "Deposit recorded", "DEPOSIT", account_number,
                  {"amount": str(money.amount)})
        return TransactionResult.ok(
            f"Deposit successful. New balance: {_plain(account.balance)}",
            new_balance=account.balance, transaction=account.last_transaction
        )

    def withdraw(self, account_number: str, amount: AmountLike) -> TransactionResult:
        if not self._allowed(Permission.WITHDRAW):
            return TransactionResult.fail(ErrorKind.PERMISSION,
                                          "You don't have permission to make withdrawals")
        if _blank(account_number):
            return TransactionResult.fail(ErrorKind.VALIDATION, "Account number is required")
        money = _parse_money(amount)
        if money is None:
            return TransactionResult.fail(ErrorKind.VALIDATION, "Withdrawal amount must be a number")
        if not money.is_positive():
            return TransactionResult.fail(ErrorKind.VALIDATION, "Withdrawal amount must be positive")

        account_number = account_number.strip()
        try:
            account = self._find_account(account_number)
            reason = account.withdrawal_denial_reason(money)
            if reason is not None:
                return TransactionResult.fail(ErrorKind.BUSINESS_RULE, reason,
                                              new_balance=account.balance)
            if not account.withdraw(money):
                return TransactionResult.fail(ErrorKind.BUSINESS_RULE,
                                              "Insufficient balance for withdrawal",
                                              new_balance=account.balance)
        except LedgerError as exc:
            self._log_failure("WITHDRAW", account_number, exc)
            return _failure(TransactionResult, exc, "Failed to save transaction to database")

        self._log("info", "Withdrawal recorded", "WITHDRAW", account_number,
                  {"amount": str(money.amount)})
        return TransactionResult.ok(
            f"Withdrawal successful. New balance: {_plain(account.balance)}",
            new_balance=account.balance, transaction=account.last_transaction
        )

    def credit_salary(self, account_number: str, amount: AmountLike,
                      employer_reference: str) -> TransactionResult:
        if not self._allowed(Permission.DEPOSIT):
            return TransactionResult.fail(ErrorKind.PERMISSION,
                                          "You don't have permission to make deposits")
        if _blank(account_number):
            return TransactionResult.fail(ErrorKind.VALIDATION, "Account number is required")
        if _blank(employer_reference):
            return TransactionResult.fail(ErrorKind.VALIDATION, "Employer reference is required")
        money = _parse_money(amount)
        if money is None:
            return TransactionResult.fail(ErrorKind.VALIDATION, "Salary amount must be a number")
        if not money.is_positive():
            return TransactionResult.fail(ErrorKind.VALIDATION, "Salary amount must be positive")

        account_number = account_number.strip()
        try:
            account = self._find_account(account_number)
            if not isinstance(account, ChequeAccount):
                return TransactionResult.fail(ErrorKind.BUSINESS_RULE,
                                              "Salary credits are only permitted on Cheque Accounts",
                                              new_balance=account.balance)
            if not account.credit_salary(money, employer_reference.strip()):
                return TransactionResult.fail(ErrorKind.BUSINESS_RULE, "Salary credit failed",
                                              new_balance=account.balance)
        except LedgerError as exc:
            self._log_failure("SALARY", account_number, exc)
            return _failure(TransactionResult, exc, "Failed to save transaction to database")

        self._log("info", "Salary credited", "SALARY", account_number,
                  {"amount": str(money.amount), "reference": employer_reference.strip()})
        return TransactionResult.ok(
            f"Salary credited. New balance: {_plain(account.balance)}",
            new_balance=account.balance, transaction=account.last_transaction
        )

    # Inquiries

    def get_balance(self, account_number: str) -> BalanceResult:
        if not self._allowed(Permission.VIEW_BALANCE):
            return BalanceResult.fail(ErrorKind.PERMISSION,
                                      "You don't have permission to view balances")
        if _blank(account_number):
            return BalanceResult.fail(ErrorKind.VALIDATION, "Account number is required")

        account_number = account_number.strip()
        try:
            account = self.store.get_account(account_number)
        except LedgerError as exc:
            self._log_failure("VIEW_BALANCE", account_number, exc)
            return _failure(BalanceResult, exc, "Failed to retrieve account from database")
        if account is None:
            return BalanceResult.fail(ErrorKind.NOT_FOUND, f"Account not found: {account_number}")
        return BalanceResult.ok("Balance retrieved", balance=account.balance, account=account)

    def get_transaction_history(self, account_number: str,
                                limit: Optional[int] = None) -> HistoryResult:
        """Most recent first; closed accounts keep their history"""
        if not self._allowed(Permission.VIEW_TRANSACTIONS):
            return HistoryResult.fail(ErrorKind.PERMISSION,
                                      "You don't have permission to view transactions")
        if _blank(account_number):
            return HistoryResult.fail(ErrorKind.VALIDATION, "Account number is required")

        account_number = account_number.strip()
        try:
            if limit is None:
                transactions = self.store.get_transaction_history(account_number)
            else:
                transactions = self.store.get_recent_transactions(account_number, limit)
            known = bool(transactions) or self.store.account_exists(account_number)
        except LedgerError as exc:
            self._log_failure("VIEW_TRANSACTIONS", account_number, exc)
            return _failure(HistoryResult, exc, "Failed to retrieve transactions from database")
        if not known:
            return HistoryResult.fail(ErrorKind.NOT_FOUND, f"Account not found: {account_number}")
        return HistoryResult.ok(f"{len(transactions)} transactions found", transactions=transactions)

    def get_customer_accounts(self, customer_id: str) -> AccountListResult:
        if not self._allowed(Permission.VIEW_BALANCE):
            return AccountListResult.fail(ErrorKind.PERMISSION,
                                          "You don't have permission to view accounts")
        if _blank(customer_id):
            return AccountListResult.fail(ErrorKind.VALIDATION, "Customer ID is required")

        customer_id = customer_id.strip()
        try:
            accounts = self.store.get_customer_accounts(customer_id)
        except LedgerError as exc:
            self._log_failure("VIEW_BALANCE", customer_id, exc)
            return _failure(AccountListResult, exc, "Failed to retrieve accounts from database")
        return AccountListResult.ok(f"{len(accounts)} accounts found", accounts=accounts)

    def get_account_statistics(self) -> StatisticsResult:
        if not self._allowed(Permission.VIEW_ALL_ACCOUNTS):
            return StatisticsResult.fail(ErrorKind.PERMISSION,
                                         "You don't have permission to view account statistics")
        try:
            counts = self.bank.count_accounts_by_type()
        except LedgerError as exc:
            self._log_failure("VIEW_ALL_ACCOUNTS", None, exc)
            return _failure(StatisticsResult, exc, "Failed to retrieve accounts from database")
        return StatisticsResult.ok(
            "Account statistics retrieved",
            savings_count=counts[AccountType.SAVINGS],
            investment_count=counts[AccountType.INVESTMENT],
            cheque_count=counts[AccountType.CHEQUE],
        )

    # Maintenance

    def process_monthly_interest(self, period: Optional[str] = None) -> InterestResult:
        """
        Run the interest batch for `period` (YYYY-MM).

        Defaults to the current month, so a second run in the same month is
        refused instead of crediting interest twice.
        """
        if not self._allowed(Permission.OVERRIDE_LIMIT):
            return InterestResult.fail(ErrorKind.PERMISSION,
                                       "You don't have permission to process interest")
        period = period or datetime.now(timezone.utc).strftime("%Y-%m")

        try:
            summary = self.bank.process_monthly_interest(period)
        except LedgerError as exc:
            self._log_failure("PROCESS_INTEREST", period, exc)
            return _failure(InterestResult, exc, "Error processing interest")

        if summary.already_processed:
            return InterestResult.fail(ErrorKind.BUSINESS_RULE,
                                       f"Interest already processed for period {period}",
                                       period=period)

        self._log("info", "Interest processed", "PROCESS_INTEREST", period, summary.to_record())
        return InterestResult.ok(
            f"Interest processed for {summary.accounts_credited} accounts. "
            f"Total interest: {_plain(summary.total_interest)}",
            accounts_processed=summary.accounts_credited,
            accounts_skipped=summary.accounts_skipped,
            total_interest=summary.total_interest,
            period=period,
        )

    def update_employment_info(self, account_number: str, company_name: Optional[str] = None,
                               company_address: Optional[str] = None) -> AccountResult:
        if not self._allowed(Permission.OPEN_ACCOUNT):
            return AccountResult.fail(ErrorKind.PERMISSION,
                                      "You don't have permission to update accounts")
        if _blank(account_number):
            return AccountResult.fail(ErrorKind.VALIDATION, "Account number is required")

        account_number = account_number.strip()
        try:
            account = self._find_account(account_number)
            if not isinstance(account, ChequeAccount):
                return AccountResult.fail(ErrorKind.BUSINESS_RULE,
                                          "Employment information only applies to Cheque Accounts")
            account.update_employment_info(company_name, company_address)
        except LedgerError as exc:
            self._log_failure("UPDATE_EMPLOYMENT", account_number, exc)
            return _failure(AccountResult, exc, "Failed to save account to database")

        self._log("info", "Employment information updated", "UPDATE_EMPLOYMENT", account_number)
        return AccountResult.ok("Employment information updated", account=account)

    def close_account(self, account_number: str) -> AccountResult:
        if not self._allowed(Permission.CLOSE_ACCOUNT):
            return AccountResult.fail(ErrorKind.PERMISSION,
                                      "You don't have permission to close accounts")
        if _blank(account_number):
            return AccountResult.fail(ErrorKind.VALIDATION, "Account number is required")

        account_number = account_number.strip()
        try:
            account = self.bank.close_account(account_number)
        except LedgerError as exc:
            self._log_failure("CLOSE_ACCOUNT", account_number, exc)
            return _failure(AccountResult, exc, "Failed to delete account from database")

        self._log("info", "Account closed", "CLOSE_ACCOUNT", account_number)
        return AccountResult.ok(f"Account closed successfully: {account_number}", account=account)

    # Private helper methods

    def _check_opening(self, customer_id: str, initial_balance: AmountLike,
                       branch: str) -> Optional[AccountResult]:
        """Permission, required fields, then opening balance format"""
        if not self._allowed(Permission.OPEN_ACCOUNT):
            return AccountResult.fail(ErrorKind.PERMISSION,
                                      "You don't have permission to open accounts")
        if _blank(customer_id):
            return AccountResult.fail(ErrorKind.VALIDATION, "Customer ID is required")
        if _blank(branch):
            return AccountResult.fail(ErrorKind.VALIDATION, "Branch code is required")
        money = _parse_money(initial_balance)
        if money is None:
            return AccountResult.fail(ErrorKind.VALIDATION, "Initial balance must be a number")
        if money.is_negative():
            return AccountResult.fail(ErrorKind.VALIDATION, "Initial balance cannot be negative")
        return None

    def _open(self, account_type: AccountType, customer_id: str, opener) -> AccountResult:
        try:
            account = opener()
        except LedgerError as exc:
            self._log_failure("OPEN_ACCOUNT", customer_id, exc)
            return _failure(AccountResult, exc, "Failed to save account to database")

        self._log("info", "Account opened", "OPEN_ACCOUNT", account.account_number,
                  {"customer_id": account.customer_id, "account_type": account_type.value})
        return AccountResult.ok(
            f"{account_type.value} opened successfully: {account.account_number}",
            account=account
        )

    def _find_account(self, account_number: str) -> Account:
        account = self.store.get_account(account_number)
        if account is None:
            raise AccountNotFoundError(account_number)
        return account


class CustomerService(_Service):
    """Customer registration, lookup, update and removal"""

    def __init__(self, bank: Bank, gate: PermissionGate, logger=None):
        super().__init__(gate, logger)
        self.bank = bank

    def register_customer(self, first_name: str, surname: str, address: str,
                          phone_number: Optional[str] = None,
                          email: Optional[str] = None) -> CustomerResult:
        if not self._allowed(Permission.CREATE_CUSTOMER):
            return CustomerResult.fail(ErrorKind.PERMISSION,
                                       "You don't have permission to register customers")
        if _blank(first_name):
            return CustomerResult.fail(ErrorKind.VALIDATION, "First name is required")
        if _blank(surname):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Surname is required")
        if _blank(address):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Address is required")
        failure = self._check_formats(first_name, surname, phone_number, email)
        if failure:
            return failure

        try:
            customer = self.bank.register_customer(
                first_name.strip(), surname.strip(), address.strip(),
                phone_number=None if _blank(phone_number) else phone_number.strip(),
                email=None if _blank(email) else email.strip(),
            )
        except LedgerError as exc:
            self._log_failure("CREATE_CUSTOMER", None, exc)
            return _failure(CustomerResult, exc, "Failed to save customer to database")

        self._log("info", "Customer registered", "CREATE_CUSTOMER", customer.customer_id)
        return CustomerResult.ok(
            f"Customer registered successfully: {customer.customer_id}", customer=customer
        )

    def get_customer(self, customer_id: str) -> CustomerResult:
        if not self._allowed(Permission.VIEW_BALANCE):
            return CustomerResult.fail(ErrorKind.PERMISSION,
                                       "You don't have permission to view customers")
        if _blank(customer_id):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Customer ID is required")

        customer_id = customer_id.strip()
        try:
            customer = self.bank.get_customer(customer_id)
        except LedgerError as exc:
            self._log_failure("VIEW_CUSTOMER", customer_id, exc)
            return _failure(CustomerResult, exc, "Failed to retrieve customer from database")
        if customer is None:
            return CustomerResult.fail(ErrorKind.NOT_FOUND, f"Customer not found: {customer_id}")
        return CustomerResult.ok("Customer found", customer=customer)

    def update_customer(self, customer_id: str, first_name: Optional[str] = None,
                        surname: Optional[str] = None, address: Optional[str] = None,
                        phone_number: Optional[str] = None,
                        email: Optional[str] = None) -> CustomerResult:
        """Replace the given contact details; None leaves a field unchanged"""
        if not self._allowed(Permission.CREATE_CUSTOMER):
            return CustomerResult.fail(ErrorKind.PERMISSION,
                                       "You don't have permission to update customers")
        if _blank(customer_id):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Customer ID is required")
        for value, message in ((first_name, "First name cannot be empty"),
                               (surname, "Surname cannot be empty"),
                               (address, "Address cannot be empty")):
            if value is not None and _blank(value):
                return CustomerResult.fail(ErrorKind.VALIDATION, message)
        failure = self._check_formats(first_name, surname, phone_number, email)
        if failure:
            return failure

        customer_id = customer_id.strip()
        try:
            customer = self.bank.get_customer(customer_id)
        except LedgerError as exc:
            self._log_failure("UPDATE_CUSTOMER", customer_id, exc)
            return _failure(CustomerResult, exc, "Failed to retrieve customer from database")
        if customer is None:
            return CustomerResult.fail(ErrorKind.NOT_FOUND, f"Customer not found: {customer_id}")

        if first_name is not None:
            customer.first_name = first_name.strip()
        if surname is not None:
            customer.surname = surname.strip()
        if address is not None:
            customer.address = address.strip()
        if phone_number is not None:
            customer.phone_number = phone_number.strip() or None
        if email is not None:
            customer.email = email.strip() or None

        try:
            self.bank.update_customer(customer)
        except LedgerError as exc:
            self._log_failure("UPDATE_CUSTOMER", customer_id, exc)
            return _failure(CustomerResult, exc, "Failed to update customer")

        self._log("info", "Customer updated", "UPDATE_CUSTOMER", customer_id)
        return CustomerResult.ok("Customer updated successfully", customer=customer)

    def search_customers(self, term: Optional[str]) -> CustomerListResult:
        """Name search; a blank term lists everyone"""
        if _blank(term):
            return self.get_all_customers()
        if not self._allowed(Permission.VIEW_BALANCE):
            return CustomerListResult.fail(ErrorKind.PERMISSION,
                                           "You don't have permission to view customers")
        return self._list_customers(lambda: self.bank.store.search_customers_by_name(term.strip()))

    def get_all_customers(self) -> CustomerListResult:
        if not self._allowed(Permission.VIEW_BALANCE):
            return CustomerListResult.fail(ErrorKind.PERMISSION,
                                           "You don't have permission to view customers")
        return self._list_customers(self.bank.get_all_customers)

    def delete_customer(self, customer_id: str) -> CustomerResult:
        if not self._allowed(Permission.DELETE_USER):
            return CustomerResult.fail(ErrorKind.PERMISSION,
                                       "You don't have permission to delete customers")
        if _blank(customer_id):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Customer ID is required")

        customer_id = customer_id.strip()
        try:
            self.bank.delete_customer(customer_id)
        except EntityNotFoundError:
            return CustomerResult.fail(ErrorKind.NOT_FOUND, "Customer not found")
        except LedgerError as exc:
            self._log_failure("DELETE_CUSTOMER", customer_id, exc)
            return _failure(CustomerResult, exc, "Failed to delete customer")

        self._log("info", "Customer deleted", "DELETE_CUSTOMER", customer_id)
        return CustomerResult.ok("Customer deleted successfully")

    def customer_count(self) -> CountResult:
        if not self._allowed(Permission.VIEW_BALANCE):
            return CountResult.fail(ErrorKind.PERMISSION,
                                    "You don't have permission to view customers")
        try:
            count = self.bank.get_customer_count()
        except LedgerError as exc:
            self._log_failure("VIEW_CUSTOMER", None, exc)
            return _failure(CountResult, exc, "Failed to retrieve customers from database")
        return CountResult.ok(f"{count} customers", count=count)

    def _list_customers(self, load) -> CustomerListResult:
        try:
            customers = load()
        except LedgerError as exc:
            self._log_failure("VIEW_CUSTOMER", None, exc)
            return _failure(CustomerListResult, exc, "Failed to retrieve customers from database")
        return CustomerListResult.ok(f"{len(customers)} customers found", customers=customers)

    def _check_formats(self, first_name: Optional[str], surname: Optional[str],
                       phone_number: Optional[str], email: Optional[str]) -> Optional[CustomerResult]:
        if not _blank(first_name) and not is_valid_name(first_name.strip()):
            return CustomerResult.fail(ErrorKind.VALIDATION, "First name contains invalid characters")
        if not _blank(surname) and not is_valid_name(surname.strip()):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Surname contains invalid characters")
        if not _blank(email) and not is_valid_email(email):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Invalid email format")
        if not _blank(phone_number) and not is_valid_phone(phone_number):
            return CustomerResult.fail(ErrorKind.VALIDATION, "Invalid phone number format")
        return None


class UserService(_Service):
    """Staff user lifecycle and sign-in for a session"""

    def __init__(self, users: UserManager, gate: PermissionGate, password_min_length: int = 6,
                 protected_user_id: str = "admin", logger=None):
        super().__init__(gate, logger)
        self.users = users
        self.password_min_length = password_min_length
        self.protected_user_id = protected_user_id

    def register_user(self, user_id: str, username: str, password: str, role: str) -> UserResult:
        if not self._allowed(Permission.CREATE_USER):
            return UserResult.fail(ErrorKind.PERMISSION, "You don't have permission to create users")
        if _blank(user_id):
            return UserResult.fail(ErrorKind.VALIDATION, "User ID is required")
        if _blank(username):
            return UserResult.fail(ErrorKind.VALIDATION, "Username is required")
        if _blank(password):
            return UserResult.fail(ErrorKind.VALIDATION, "Password is required")
        if _blank(role):
            return UserResult.fail(ErrorKind.VALIDATION, "Role is required")
        if len(password) < self.password_min_length:
            return UserResult.fail(
                ErrorKind.VALIDATION,
                f"Password must be at least {self.password_min_length} characters"
            )
        if role.strip().upper() not in Role.__members__:
            return UserResult.fail(ErrorKind.VALIDATION,
                                   "Invalid role. Must be TELLER, MANAGER, or ADMIN")

        user_id = user_id.strip()
        try:
            user = self.users.create_user(user_id, username.strip(), password,
                                          Role[role.strip().upper()])
        except ValidationError as exc:
            return UserResult.fail(ErrorKind.BUSINESS_RULE, str(exc))
        except LedgerError as exc:
            self._log_failure("CREATE_USER", user_id, exc)
            return _failure(UserResult, exc, "Failed to save user to database")

        self._log("info", "User registered", "CREATE_USER", user_id, {"role": user.role.value})
        return UserResult.ok(f"User registered successfully: {user_id}", user=user)

    def delete_user(self, user_id: str) -> UserResult:
        if not self._allowed(Permission.DELETE_USER):
            return UserResult.fail(ErrorKind.PERMISSION, "You don't have permission to delete users")
        if _blank(user_id):
            return UserResult.fail(ErrorKind.VALIDATION, "User ID is required")

        user_id = user_id.strip()
        if user_id == self.protected_user_id:
            return UserResult.fail(ErrorKind.BUSINESS_RULE,
                                   "The default administrator cannot be deleted")
        try:
            deleted = self.users.delete_user(user_id)
        except LedgerError as exc:
            self._log_failure("DELETE_USER", user_id, exc)
            return _failure(UserResult, exc, "Failed to delete user from database")
        if not deleted:
            return UserResult.fail(ErrorKind.NOT_FOUND, f"User not found: {user_id}")

        self._log("info", "User deleted", "DELETE_USER", user_id)
        return UserResult.ok(f"User deleted successfully: {user_id}")

    def login(self, session: SessionContext, user_id: str, password: str) -> UserResult:
        """Authenticate and make the user the session's identity"""
        if _blank(user_id) or _blank(password):
            return UserResult.fail(ErrorKind.VALIDATION, "User ID and password are required")

        user_id = user_id.strip()
        try:
            user = self.users.authenticate(user_id, password)
        except LedgerError as exc:
            self._log_failure("LOGIN", user_id, exc)
            return _failure(UserResult, exc, "Failed to retrieve user from database")
        if user is None:
            return UserResult.fail(ErrorKind.PERMISSION, "Invalid user ID or password")
        session.sign_in(user)
        log_action(self.logger, "info", "User signed in", user_id=user.user_id, action="LOGIN")
        return UserResult.ok(f"Welcome, {user.username}", user=user)
