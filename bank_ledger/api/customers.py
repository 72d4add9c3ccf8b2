"""
Customer management endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, status

from .dependencies import LedgerSystem, get_session, get_system, raise_for_result
from .schemas import (
    CreateCustomerRequest, UpdateCustomerRequest, account_to_dict, customer_to_dict
)
from ..users import SessionContext


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def register_customer(
    request: CreateCustomerRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """Register a new customer"""
    result = system.customer_service(session).register_customer(
        request.first_name, request.surname, request.address,
        phone_number=request.phone_number, email=request.email
    )
    raise_for_result(result)
    return {"message": result.message, "customer": customer_to_dict(result.customer)}


@router.get("")
async def list_customers(
    search: Optional[str] = None,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    """List customers, optionally filtered by a name fragment"""
    result = system.customer_service(session).search_customers(search)
    raise_for_result(result)
    return {
        "count": len(result.customers),
        "customers": [customer_to_dict(c) for c in result.customers],
    }


@router.get("/{customer_id}")
async def get_customer(
    customer_id: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.customer_service(session).get_customer(customer_id)
    raise_for_result(result)
    return customer_to_dict(result.customer)


@router.patch("/{customer_id}")
async def update_customer(
    customer_id: str,
    request: UpdateCustomerRequest,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.customer_service(session).update_customer(
        customer_id, **request.model_dump(exclude_unset=True)
    )
    raise_for_result(result)
    return {"message": result.message, "customer": customer_to_dict(result.customer)}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.customer_service(session).delete_customer(customer_id)
    raise_for_result(result)
    return {"message": result.message}


@router.get("/{customer_id}/accounts")
async def get_customer_accounts(
    customer_id: str,
    session: SessionContext = Depends(get_session),
    system: LedgerSystem = Depends(get_system)
):
    result = system.account_service(session).get_customer_accounts(customer_id)
    raise_for_result(result)
    return {"accounts": [account_to_dict(a) for a in result.accounts]}
