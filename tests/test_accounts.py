"""
Test suite for the account variants

Covers deposit, withdrawal and interest rules per variant, opening rules,
trusted rehydration and the persistence contract of every balance change.
"""

import threading
import pytest
from decimal import Decimal

from bank_ledger.accounts import (
    Account, AccountType, ChequeAccount, InvestmentAccount, SavingsAccount
)
from bank_ledger.currency import Money
from bank_ledger.customers import Customer
from bank_ledger.exceptions import AccountRuleError, PersistenceError
from bank_ledger.ledger_store import LedgerStore
from bank_ledger.storage import InMemoryStorage
from bank_ledger.transactions import TransactionType


class FlakyStorage(InMemoryStorage):
    """In-memory storage that fails writes to one table on demand"""

    def __init__(self):
        super().__init__()
        self.fail_table = None

    def save(self, table, record_id, data):
        if table == self.fail_table:
            raise OSError("disk full")
        super().save(table, record_id, data)


@pytest.fixture
def storage():
    return FlakyStorage()


@pytest.fixture
def store(storage):
    ledger_store = LedgerStore(storage)
    ledger_store.initialize_schema()
    return ledger_store


@pytest.fixture
def customer(store):
    customer = Customer("CUST-1000", "Kagiso", "Molefe", "Plot 123, Gaborone")
    store.save_customer(customer)
    return customer


def open_account(store, account):
    store.save_account(account)
    account.customer.add_account(account)
    return account


@pytest.fixture
def savings(store, customer):
    return open_account(store, SavingsAccount("BWB-10000", "1000.00", "Main Mall", customer, store))


@pytest.fixture
def investment(store, customer):
    return open_account(store, InvestmentAccount("BWB-10001", "1000.00", "Main Mall", customer, store))


@pytest.fixture
def cheque(store, customer):
    return open_account(store, ChequeAccount(
        "BWB-10002", "200.00", "Main Mall", customer, store, "Acme", "Main St"
    ))


def m(value):
    return Money(Decimal(value))


class TestOpeningRules:
    """Construction-time validation"""

    def test_account_requires_customer(self, store):
        with pytest.raises(AccountRuleError):
            SavingsAccount("BWB-10000", "10.00", "Main Mall", None, store)

    def test_negative_opening_balance_rejected(self, store, customer):
        with pytest.raises(AccountRuleError, match="cannot be negative"):
            SavingsAccount("BWB-10000", "-0.01", "Main Mall", customer, store)

    def test_non_numeric_opening_balance_rejected(self, store, customer):
        with pytest.raises(AccountRuleError, match="must be a number"):
            SavingsAccount("BWB-10000", "lots", "Main Mall", customer, store)

    def test_investment_minimum_is_inclusive(self, store, customer):
        with pytest.raises(AccountRuleError) as exc_info:
            InvestmentAccount("BWB-10001", "499.99", "Main Mall", customer, store)
        assert str(exc_info.value) == "Investment Account requires minimum opening balance of BWP 500.00"

        account = InvestmentAccount("BWB-10001", "500.00", "Main Mall", customer, store)
        assert account.balance == m("500.00")

    @pytest.mark.parametrize("company_name,company_address", [
        ("", "Main St"), ("Acme", ""), ("   ", "Main St"), (None, "Main St"), ("Acme", None),
    ])
    def test_cheque_requires_employment_details(self, store, customer, company_name, company_address):
        with pytest.raises(AccountRuleError, match="employment information"):
            ChequeAccount("BWB-10002", "200.00", "Main Mall", customer, store,
                          company_name, company_address)

    def test_cheque_trims_employment_details(self, store, customer):
        account = ChequeAccount("BWB-10002", "0", "Main Mall", customer, store, "  Acme ", " Main St ")
        assert account.company_name == "Acme"
        assert account.company_address == "Main St"

    def test_opening_creates_no_transaction(self, savings):
        assert savings.get_transaction_history() == []
        assert savings.last_transaction is None

    def test_capabilities(self):
        assert not SavingsAccount.allows_withdrawal
        assert SavingsAccount.earns_interest
        assert InvestmentAccount.allows_withdrawal and InvestmentAccount.earns_interest
        assert ChequeAccount.allows_withdrawal and not ChequeAccount.earns_interest


class TestDeposits:

    def test_deposit_updates_balance_and_records_transaction(self, savings, store):
        assert savings.deposit("500.00")

        assert savings.balance == m("1500.00")
        history = savings.get_transaction_history()
        assert len(history) == 1
        assert history[0].transaction_type == TransactionType.DEPOSIT
        assert history[0].amount == m("500.00")
        assert history[0].balance_after == m("1500.00")
        assert store.load_balance("BWB-10000") == m("1500.00")

    @pytest.mark.parametrize("amount", [0, "0.00", -5, "-0.01", "abc", None])
    def test_invalid_deposit_is_refused(self, savings, amount):
        assert not savings.deposit(amount)
        assert savings.balance == m("1000.00")
        assert savings.get_transaction_history() == []

    def test_sub_cent_deposit_rounds_to_zero_and_is_refused(self, savings):
        assert not savings.deposit("0.004")
        assert savings.get_transaction_history() == []


class TestWithdrawals:

    @pytest.mark.parametrize("amount", [0, -5, "100.00", "1000.00", "999999.99", "abc"])
    def test_savings_never_allows_withdrawal(self, savings, amount):
        assert not savings.withdraw(amount)
        assert savings.balance == m("1000.00")
        assert savings.get_transaction_history() == []

    def test_investment_withdrawal(self, investment):
        assert investment.withdraw("250.00")

        assert investment.balance == m("750.00")
        latest = investment.get_transaction_history()[0]
        assert latest.transaction_type == TransactionType.WITHDRAWAL
        assert latest.balance_after == m("750.00")

    def test_withdraw_entire_balance(self, cheque):
        assert cheque.withdraw("200.00")
        assert cheque.balance.is_zero()

    @pytest.mark.parametrize("amount", ["200.01", 0, "-1"])
    def test_cheque_refuses_overdraft_and_non_positive(self, cheque, amount):
        assert not cheque.withdraw(amount)
        assert cheque.balance == m("200.00")

    def test_denial_reasons(self, savings, investment):
        assert savings.withdrawal_denial_reason("10") == "Withdrawals are not permitted on Savings Accounts"
        assert investment.withdrawal_denial_reason("0") == "Withdrawal amount must be positive"
        assert investment.withdrawal_denial_reason("x") == "Withdrawal amount must be a number"
        assert investment.withdrawal_denial_reason("1000.01") == "Insufficient balance for withdrawal"
        assert investment.withdrawal_denial_reason("1000.00") is None


class TestInterest:

    def test_calculate_interest_is_pure(self, savings, investment, cheque):
        assert savings.calculate_interest() == m("0.50")
        assert investment.calculate_interest() == m("50.00")
        assert cheque.calculate_interest().is_zero()

        assert savings.balance == m("1000.00")
        assert savings.get_transaction_history() == []

    def test_apply_interest_on_savings(self, store, customer):
        account = open_account(store, SavingsAccount("BWB-10003", "10000.00", "Main Mall", customer, store))

        posting = account.apply_interest()

        assert posting.transaction_type == TransactionType.INTEREST
        assert posting.amount == m("5.00")
        assert posting.balance_after == m("10005.00")
        assert account.balance == m("10005.00")

    def test_apply_interest_on_zero_balance_is_noop(self, store, customer):
        account = open_account(store, SavingsAccount("BWB-10003", "0", "Main Mall", customer, store))

        assert account.apply_interest() is None
        assert account.get_transaction_history() == []

    def test_interest_rounding_to_zero_is_noop(self, store, customer):
        account = open_account(store, SavingsAccount("BWB-10003", "1.00", "Main Mall", customer, store))

        assert account.apply_interest() is None
        assert account.balance == m("1.00")

    def test_cheque_apply_interest_is_noop(self, cheque):
        assert cheque.apply_interest() is None
        assert cheque.get_transaction_history() == []


class TestSalary:

    def test_credit_salary(self, cheque):
        assert cheque.credit_salary("3500.00", "PAY-2026-01")

        posting = cheque.get_transaction_history()[0]
        assert posting.transaction_type == TransactionType.SALARY
        assert posting.description == "Salary credit from Acme (Ref: PAY-2026-01)"
        assert cheque.balance == m("3700.00")

    @pytest.mark.parametrize("amount", [0, "-10", "nope"])
    def test_credit_salary_requires_positive_amount(self, cheque, amount):
        assert not cheque.credit_salary(amount, "PAY-1")
        assert cheque.balance == m("200.00")

    def test_update_employment_info_persists(self, cheque, store):
        cheque.update_employment_info(company_name="Globex", company_address="  ")

        reloaded = store.get_account("BWB-10002")
        assert reloaded.company_name == "Globex"
        assert reloaded.company_address == "Main St"


class TestLedgerConsistency:
    """Balance and transaction history always agree"""

    def test_balance_equals_opening_plus_signed_transactions(self, cheque):
        cheque.deposit("100.00")
        cheque.withdraw("50.25")
        cheque.credit_salary("1000.00", "PAY-1")
        cheque.withdraw("0.75")

        history = cheque.get_transaction_history()
        total = Money.zero()
        for txn in history:
            total = total + txn.signed_amount

        assert cheque.balance == m("200.00") + total
        assert history[0].balance_after == cheque.balance
        assert [t.transaction_type for t in history] == [
            TransactionType.WITHDRAWAL, TransactionType.SALARY,
            TransactionType.WITHDRAWAL, TransactionType.DEPOSIT,
        ]

    def test_failed_persistence_leaves_balance_untouched(self, savings, storage, store):
        storage.fail_table = "transactions"

        with pytest.raises(PersistenceError):
            savings.deposit("50.00")

        storage.fail_table = None
        assert savings.balance == m("1000.00")
        assert store.load_balance("BWB-10000") == m("1000.00")
        assert savings.get_transaction_history() == []

    def test_stale_object_rereads_persisted_balance(self, investment, store):
        other_copy = store.get_account("BWB-10001")
        assert other_copy.deposit("100.00")

        # The first object still believes 1000.00 but must not overwrite
        assert investment.withdraw("1100.00")
        assert investment.balance.is_zero()
        assert store.load_balance("BWB-10001").is_zero()

    def test_concurrent_deposits_are_serialized(self, investment, store):
        copies = [store.get_account("BWB-10001") for _ in range(8)]

        def deposit_many(account):
            for _ in range(10):
                account.deposit("1.00")

        threads = [threading.Thread(target=deposit_many, args=(acc,)) for acc in copies]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.load_balance("BWB-10001") == m("1080.00")
        history = store.get_transaction_history("BWB-10001")
        assert len(history) == 80
        assert history[0].balance_after == m("1080.00")


class TestRehydration:
    """Stored accounts load without re-running opening rules"""

    def test_investment_below_minimum_still_loads(self, investment, store):
        investment.withdraw("900.00")

        reloaded = store.get_account("BWB-10001")
        assert isinstance(reloaded, InvestmentAccount)
        assert reloaded.balance == m("100.00")

    def test_record_shape(self, cheque):
        data = cheque.to_record()

        assert data["account_type"] == "Cheque Account"
        assert data["company_name"] == "Acme"
        assert data["company_address"] == "Main St"
        assert data["balance"] == "200.00"

    def test_non_cheque_records_have_null_employer_fields(self, savings):
        data = savings.to_record()
        assert data["account_type"] == "Savings Account"
        assert data["company_name"] is None
        assert data["company_address"] is None

    def test_from_record_restores_variant(self, cheque, customer, store):
        restored = Account.from_record(cheque.to_record(), customer, store)

        assert isinstance(restored, ChequeAccount)
        assert restored.account_type is AccountType.CHEQUE
        assert restored.company_name == "Acme"
        assert restored.date_opened == cheque.date_opened
        assert restored == cheque
