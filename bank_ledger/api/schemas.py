"""
Pydantic schemas for API requests and response helpers
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from ..accounts import Account, ChequeAccount
from ..currency import Money
from ..customers import Customer
from ..transactions import Transaction
from ..users import User


class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field("BWP", description="Currency code")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyModel':
        return cls(amount=str(money.amount), currency=money.currency.code)


# Auth schemas
class TokenRequest(BaseModel):
    user_id: str
    password: str


class CreateUserRequest(BaseModel):
    user_id: str
    username: str
    password: str
    role: str = Field(..., description="TELLER, MANAGER or ADMIN")


# Customer schemas
class CreateCustomerRequest(BaseModel):
    first_name: str
    surname: str
    address: str
    phone_number: Optional[str] = None
    email: Optional[str] = None


class UpdateCustomerRequest(BaseModel):
    first_name: Optional[str] = None
    surname: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None


# Account schemas
class OpenAccountRequest(BaseModel):
    customer_id: str
    initial_balance: str = Field(..., description="Decimal amount as string")
    branch: str


class OpenChequeAccountRequest(OpenAccountRequest):
    company_name: str
    company_address: str


class AmountRequest(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")


class SalaryRequest(AmountRequest):
    employer_reference: str


class EmploymentRequest(BaseModel):
    company_name: Optional[str] = None
    company_address: Optional[str] = None


class InterestRunRequest(BaseModel):
    period: Optional[str] = Field(None, description="YYYY-MM; defaults to the current month")


# Response helpers

def account_to_dict(account: Account) -> Dict[str, Any]:
    data = {
        "account_number": account.account_number,
        "account_type": account.account_type.value,
        "customer_id": account.customer_id,
        "branch": account.branch,
        "balance": MoneyModel.from_money(account.balance).model_dump(),
        "date_opened": account.date_opened.isoformat(),
    }
    if isinstance(account, ChequeAccount):
        data["company_name"] = account.company_name
        data["company_address"] = account.company_address
    return data


def customer_to_dict(customer: Customer) -> Dict[str, Any]:
    return {
        "customer_id": customer.customer_id,
        "first_name": customer.first_name,
        "surname": customer.surname,
        "address": customer.address,
        "phone_number": customer.phone_number,
        "email": customer.email,
        "registered_at": customer.registered_at.isoformat(),
        "accounts": [account.account_number for account in customer.get_accounts()],
    }


def transaction_to_dict(transaction: Transaction) -> Dict[str, Any]:
    return {
        "transaction_id": transaction.transaction_id,
        "account_number": transaction.account_number,
        "transaction_type": transaction.transaction_type.value,
        "amount": MoneyModel.from_money(transaction.amount).model_dump(),
        "balance_after": MoneyModel.from_money(transaction.balance_after).model_dump(),
        "description": transaction.description,
        "timestamp": transaction.timestamp.isoformat(),
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "user_id": user.user_id,
        "username": user.username,
        "role": user.role.value,
        "permissions": sorted(p.value for p in user.permissions),
    }
