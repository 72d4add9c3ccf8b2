"""
Bank Ledger API Application Factory
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .dependencies import LedgerSystem
from .accounts import router as accounts_router
from .auth import router as auth_router
from .customers import router as customers_router
from .. import __version__


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application around a ledger system"""
    system = system or LedgerSystem()

    app = FastAPI(
        title="Bank Ledger API",
        description="Customers, savings/investment/cheque accounts and their transaction ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix="/auth", tags=["Auth"])
    app.include_router(customers_router, prefix="/customers", tags=["Customers"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "bank_ledger_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": system.config.bank_name,
            "bank_code": system.config.bank_code,
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/auth",
                "customers": "/customers",
                "accounts": "/accounts",
            }
        }

    return app


__all__ = ["create_app", "LedgerSystem"]
