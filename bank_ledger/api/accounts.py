"""
Account management and transaction endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .dependencies import LedgerSystem, get_session, get_system, raise_for_result
from .schemas import (
    AmountRequest, EmploymentRequest, InterestRunRequest, MoneyModel, OpenAccountRequest,
    OpenChequeAccountRequest, SalaryRequest, account_to_dict, transaction_to_dict
)
from ..services import AccountResult, TransactionResult
from ..users import SessionContext


router = APIRouter()


def _opened(result: AccountResult) -> dict:
    raise_for_result(result)
    return {"message": result.message, "account": account_to_dict(result.account)}


def _posted(result: TransactionResult) -> dict:
    raise_for_result(result)
    return {
        "message": result.message,
        "new_balance": MoneyModel.from_money(result.new_balance).model_dump(),
        "transaction": transaction_to_dict(result.transaction),
    }


@router.post("/savings", status_code=status.HTTP_201_CREATED)
async def open_savings_account(
    request: OpenAccountRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _opened(system.account_service(session).open_savings_account(
        request.customer_id, request.initial_balance, request.branch
    ))


@router.post("/investment", status_code=status.HTTP_201_CREATED)
async def open_investment_account(
    request: OpenAccountRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _opened(system.account_service(session).open_investment_account(
        request.customer_id, request.initial_balance, request.branch
    ))


@router.post("/cheque", status_code=status.HTTP_201_CREATED)
async def open_cheque_account(
    request: OpenChequeAccountRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _opened(system.account_service(session).open_cheque_account(
        request.customer_id, request.initial_balance, request.branch,
        request.company_name, request.company_address
    ))


@router.get("/statistics")
async def get_account_statistics(
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """Account counts per variant"""
    stats = system.account_service(session).get_account_statistics()
    raise_for_result(stats)
    return {
        "savings": stats.savings_count,
        "investment": stats.investment_count,
        "cheque": stats.cheque_count,
        "total": stats.total_count,
    }


@router.post("/interest")
async def process_monthly_interest(
    request: InterestRunRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """Run the monthly interest batch"""
    result = system.account_service(session).process_monthly_interest(request.period)
    raise_for_result(result)
    return {
        "message": result.message,
        "period": result.period,
        "accounts_processed": result.accounts_processed,
        "accounts_skipped": result.accounts_skipped,
        "total_interest": MoneyModel.from_money(result.total_interest).model_dump(),
    }


@router.get("/{account_number}")
async def get_account(
    account_number: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.account_service(session).get_balance(account_number)
    raise_for_result(result)
    return account_to_dict(result.account)


@router.get("/{account_number}/balance")
async def get_balance(
    account_number: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.account_service(session).get_balance(account_number)
    raise_for_result(result)
    return {
        "account_number": account_number,
        "balance": MoneyModel.from_money(result.balance).model_dump(),
    }


@router.post("/{account_number}/deposit")
async def deposit(
    account_number: str,
    request: AmountRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _posted(system.account_service(session).deposit(account_number, request.amount))


@router.post("/{account_number}/withdraw")
async def withdraw(
    account_number: str,
    request: AmountRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _posted(system.account_service(session).withdraw(account_number, request.amount))


@router.post("/{account_number}/salary")
async def credit_salary(
    account_number: str,
    request: SalaryRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    return _posted(system.account_service(session).credit_salary(
        account_number, request.amount, request.employer_reference
    ))


@router.get("/{account_number}/transactions")
async def get_account_transactions(
    account_number: str,
    limit: Optional[int] = None,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """Transaction history, most recent first"""
    result = system.account_service(session).get_transaction_history(account_number, limit)
    raise_for_result(result)
    return {"transactions": [transaction_to_dict(t) for t in result.transactions]}


@router.patch("/{account_number}/employment")
async def update_employment_info(
    account_number: str,
    request: EmploymentRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.account_service(session).update_employment_info(
        account_number, request.company_name, request.company_address
    )
    raise_for_result(result)
    return {"message": result.message, "account": account_to_dict(result.account)}


@router.delete("/{account_number}")
async def close_account(
    account_number: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.account_service(session).close_account(account_number)
    raise_for_result(result)
    return {"message": result.message}
