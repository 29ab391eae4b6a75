"""
Loan Management API Application Factory
"""

from typing import Optional
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..system import LoanSystem
from .auth import router as auth_router
from .errors import register_exception_handlers
from .loans import router as loans_router


def create_app(system: Optional[LoanSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Management API",
        description="Consumer loans against customer credit limits",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.loan_system = system or LoanSystem()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(loans_router, prefix="/api/loans", tags=["Loans"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_management_api",
            "version": __version__
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8080, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "loan_management.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
