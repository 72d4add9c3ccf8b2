"""Exception hierarchy for the bank ledger."""


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class ValidationError(LedgerError):
    """Raised when input is missing or malformed."""


class AccountRuleError(ValidationError):
    """Raised when an account cannot be opened under its variant's rules."""


class EntityNotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""


class CustomerNotFoundError(EntityNotFoundError):
    """Raised when a customer ID is unknown."""

    def __init__(self, customer_id: str):
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class AccountNotFoundError(EntityNotFoundError):
    """Raised when an account number is unknown."""

    def __init__(self, account_number: str):
        super().__init__(f"Account not found: {account_number}")
        self.account_number = account_number


class CustomerHasAccountsError(LedgerError):
    """Raised when deleting a customer who still owns accounts."""


class DuplicateTransactionError(LedgerError):
    """Raised when a transaction ID is written twice."""


class PersistenceError(LedgerError):
    """Raised when the backing store fails to save or load."""
