"""
Test suite for the bank orchestrator

Covers ID generation, account opening, closing, customer deletion and the
monthly interest batch.
"""

import pytest
from decimal import Decimal

from bank_ledger.accounts import AccountType, ChequeAccount, InvestmentAccount, SavingsAccount
from bank_ledger.bank import Bank
from bank_ledger.currency import Money
from bank_ledger.exceptions import (
    AccountNotFoundError, AccountRuleError, CustomerHasAccountsError,
    CustomerNotFoundError, PersistenceError, ValidationError
)
from bank_ledger.ledger_store import LedgerStore
from bank_ledger.storage import InMemoryStorage, SQLiteStorage
from bank_ledger.transactions import TransactionType


@pytest.fixture
def store():
    ledger_store = LedgerStore(InMemoryStorage())
    ledger_store.initialize_schema()
    return ledger_store


@pytest.fixture
def bank(store):
    return Bank(store)


@pytest.fixture
def customer(bank):
    return bank.register_customer("Kagiso", "Molefe", "Plot 123, Gaborone")


def m(value):
    return Money(Decimal(value))


class FailOneAccount:
    """Fails transaction writes for `fail_account` until it is cleared"""

    fail_account = None

    def save(self, table, record_id, data):
        if table == "transactions" and data.get("account_number") == self.fail_account:
            raise OSError("disk full")
        super().save(table, record_id, data)


class FlakyMemoryStorage(FailOneAccount, InMemoryStorage):
    pass


class FlakySQLiteStorage(FailOneAccount, SQLiteStorage):
    pass


class TestIdGeneration:

    def test_first_ids(self, bank, customer):
        assert customer.customer_id == "CUST-1000"
        account = bank.open_savings_account(customer.customer_id, "100.00", "Main Mall")
        assert account.account_number == "BWB-10000"

    def test_ids_are_sequential(self, bank, customer):
        second = bank.register_customer("Neo", "Dube", "Francistown")
        first_account = bank.open_savings_account(customer.customer_id, "0", "Main Mall")
        second_account = bank.open_cheque_account(
            second.customer_id, "0", "Main Mall", "Acme", "Main St"
        )

        assert second.customer_id == "CUST-1001"
        assert first_account.account_number == "BWB-10000"
        assert second_account.account_number == "BWB-10001"

    def test_custom_bank_code(self, store):
        bank = Bank(store, bank_code="GAB", customer_id_start=1, account_number_start=1)
        customer = bank.register_customer("Kagiso", "Molefe", "Gaborone")
        account = bank.open_savings_account(customer.customer_id, "0", "Main Mall")

        assert customer.customer_id == "CUST-0001"
        assert account.account_number == "GAB-00001"

    def test_numbering_continues_after_restart(self, tmp_path):
        path = tmp_path / "ledger.db"
        storage = SQLiteStorage(path)
        store = LedgerStore(storage)
        store.initialize_schema()
        bank = Bank(store)
        customer = bank.register_customer("Kagiso", "Molefe", "Gaborone")
        bank.open_savings_account(customer.customer_id, "10.00", "Main Mall")
        storage.close()

        storage = SQLiteStorage(path)
        try:
            bank = Bank(LedgerStore(storage))
            customer = bank.register_customer("Neo", "Dube", "Francistown")
            account = bank.open_savings_account(customer.customer_id, "10.00", "Main Mall")

            assert customer.customer_id == "CUST-1001"
            assert account.account_number == "BWB-10001"
        finally:
            storage.close()

    def test_ids_skip_existing_records_after_delete(self, store):
        bank = Bank(store)
        first = bank.register_customer("Kagiso", "Molefe", "Gaborone")
        bank.register_customer("Neo", "Dube", "Francistown")
        bank.delete_customer(first.customer_id)

        # One customer left, so a fresh bank starts counting at CUST-1001 which is taken
        restarted = Bank(store)
        third = restarted.register_customer("Lesego", "Kgosi", "Maun")

        assert third.customer_id == "CUST-1002"
        assert store.count_customers() == 2


class TestRegisteringCustomers:

    @pytest.mark.parametrize("args,message", [
        (("", "Molefe", "Gaborone"), "First name is required"),
        (("Kagiso", "  ", "Gaborone"), "Surname is required"),
        (("Kagiso", "Molefe", ""), "Address is required"),
        ((None, "Molefe", "Gaborone"), "First name is required"),
    ])
    def test_blank_required_fields(self, bank, args, message):
        with pytest.raises(ValidationError, match=message):
            bank.register_customer(*args)
        assert bank.get_customer_count() == 0

    def test_optional_contact_details(self, bank):
        customer = bank.register_customer("Neo", "Dube", "Francistown")
        assert customer.phone_number is None
        assert customer.email is None


class TestOpeningAccounts:

    def test_open_each_variant(self, bank, customer):
        savings = bank.open_savings_account(customer.customer_id, "1000.00", "Main Mall")
        investment = bank.open_investment_account(customer.customer_id, "500.00", "Main Mall")
        cheque = bank.open_cheque_account(customer.customer_id, "200.00", "Main Mall", "Acme", "Main St")

        assert isinstance(savings, SavingsAccount)
        assert isinstance(investment, InvestmentAccount)
        assert isinstance(cheque, ChequeAccount)
        assert bank.get_account_count() == 3
        assert len(bank.get_customer(customer.customer_id).get_accounts()) == 3
        assert bank.count_accounts_by_type() == {
            AccountType.SAVINGS: 1, AccountType.INVESTMENT: 1, AccountType.CHEQUE: 1,
        }

    def test_opening_records_no_transaction(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "1000.00", "Main Mall")
        assert account.get_transaction_history() == []

    def test_unknown_customer(self, bank):
        with pytest.raises(CustomerNotFoundError, match="CUST-9999"):
            bank.open_savings_account("CUST-9999", "10.00", "Main Mall")
        assert bank.get_account_count() == 0

    def test_investment_minimum(self, bank, customer):
        with pytest.raises(AccountRuleError):
            bank.open_investment_account(customer.customer_id, "499.99", "Main Mall")
        assert bank.get_account_count() == 0

        account = bank.open_investment_account(customer.customer_id, "500.00", "Main Mall")
        assert account.balance == m("500.00")

    def test_get_account_reflects_mutations(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "1000.00", "Main Mall")
        account.deposit("500.00")

        loaded = bank.get_account(account.account_number)
        assert loaded.balance == m("1500.00")
        assert bank.get_account("BWB-99999") is None


class TestClosingAndDeleting:

    def test_close_requires_zero_balance(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "10.00", "Main Mall")

        with pytest.raises(AccountRuleError, match="must be zero"):
            bank.close_account(account.account_number)
        assert bank.get_account(account.account_number) is not None

    def test_close_unknown_account(self, bank):
        with pytest.raises(AccountNotFoundError):
            bank.close_account("BWB-99999")

    def test_delete_customer_only_after_accounts_closed(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "0", "Main Mall")

        with pytest.raises(CustomerHasAccountsError):
            bank.delete_customer(customer.customer_id)
        assert bank.get_customer(customer.customer_id) is not None

        bank.close_account(account.account_number)
        bank.delete_customer(customer.customer_id)

        assert bank.get_customer(customer.customer_id) is None
        assert bank.get_customer_count() == 0

    def test_delete_unknown_customer(self, bank):
        with pytest.raises(CustomerNotFoundError):
            bank.delete_customer("CUST-9999")

    def test_update_customer(self, bank, customer):
        customer.address = "Plot 7, Maun"
        bank.update_customer(customer)

        assert bank.get_customer(customer.customer_id).address == "Plot 7, Maun"

    def test_update_unknown_customer(self, bank, customer):
        customer.customer_id = "CUST-9999"
        with pytest.raises(CustomerNotFoundError):
            bank.update_customer(customer)


class TestMonthlyInterest:

    def test_savings_interest(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "10000.00", "Main Mall")

        summary = bank.process_monthly_interest()

        assert summary.accounts_credited == 1
        assert summary.total_interest == m("5.00")
        loaded = bank.get_account(account.account_number)
        assert loaded.balance == m("10005.00")
        history = loaded.get_transaction_history()
        assert len(history) == 1
        assert history[0].transaction_type == TransactionType.INTEREST
        assert history[0].balance_after == m("10005.00")

    def test_cheque_accounts_are_skipped(self, bank, customer):
        bank.open_savings_account(customer.customer_id, "1000.00", "Main Mall")
        bank.open_investment_account(customer.customer_id, "1000.00", "Main Mall")
        cheque = bank.open_cheque_account(customer.customer_id, "1000.00", "Main Mall", "Acme", "Main St")

        summary = bank.process_monthly_interest()

        assert summary.accounts_visited == 2
        assert summary.accounts_skipped == 1
        assert summary.accounts_credited == 2
        assert summary.total_interest == m("50.50")
        assert bank.get_account(cheque.account_number).balance == m("1000.00")

    def test_zero_interest_accounts_get_no_posting(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "1.00", "Main Mall")

        summary = bank.process_monthly_interest()

        assert summary.accounts_visited == 1
        assert summary.accounts_credited == 0
        assert summary.total_interest.is_zero()
        assert account.get_transaction_history() == []

    def test_runs_without_period_apply_every_time(self, bank, customer):
        account = bank.open_savings_account(customer.customer_id, "10000.00", "Main Mall")

        bank.process_monthly_interest()
        bank.process_monthly_interest()

        assert bank.get_account(account.account_number).balance == m("10010.00")

    def test_period_key_prevents_double_application(self, bank, customer, store):
        account = bank.open_savings_account(customer.customer_id, "10000.00", "Main Mall")

        first = bank.process_monthly_interest("2026-01")
        second = bank.process_monthly_interest("2026-01")

        assert not first.already_processed
        assert second.already_processed
        assert second.accounts_credited == 0
        assert bank.get_account(account.account_number).balance == m("10005.00")
        assert store.interest_run_exists("2026-01")

        bank.process_monthly_interest("2026-02")
        assert bank.get_account(account.account_number).balance == m("10010.00")

    @pytest.mark.parametrize("period", ["2026-13", "2026-1", "January", "26-01"])
    def test_invalid_period(self, bank, period):
        with pytest.raises(ValidationError):
            bank.process_monthly_interest(period)

    def test_empty_bank(self, bank):
        summary = bank.process_monthly_interest()
        assert summary.accounts_visited == 0
        assert summary.total_interest.is_zero()

    @pytest.mark.parametrize("storage_cls", [FlakyMemoryStorage, FlakySQLiteStorage])
    def test_failed_run_posts_nothing_and_can_be_retried(self, storage_cls):
        storage = storage_cls()
        store = LedgerStore(storage)
        store.initialize_schema()
        bank = Bank(store)
        customer = bank.register_customer("Kagiso", "Molefe", "Plot 123, Gaborone")
        first = bank.open_savings_account(customer.customer_id, "10000.00", "Main Mall")
        second = bank.open_savings_account(customer.customer_id, "10000.00", "Main Mall")
        storage.fail_account = second.account_number

        with pytest.raises(PersistenceError):
            bank.process_monthly_interest("2026-10")

        assert bank.get_account(first.account_number).balance == m("10000.00")
        assert bank.get_account(second.account_number).balance == m("10000.00")
        assert store.get_transaction_history(first.account_number) == []
        assert not store.interest_run_exists("2026-10")

        storage.fail_account = None
        summary = bank.process_monthly_interest("2026-10")

        assert summary.accounts_credited == 2
        assert summary.total_interest == m("10.00")
        assert bank.get_account(first.account_number).balance == m("10005.00")
        assert bank.get_account(second.account_number).balance == m("10005.00")
        assert len(store.get_transaction_history(first.account_number)) == 1
        assert store.interest_run_exists("2026-10")
        storage.close()
