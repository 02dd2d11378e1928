import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from admin_api import router as admin_router
from applications_api import router as applications_router
from auth import FirebaseVerifier, IdentityVerifier, VerifierConfigError
from database import connect
from lifecycle import InvalidTransition
from loans_api import router as loans_router
from payments import PaymentError, PaymentGateway, StripeGateway
from schemas import LoanApplication, LoanProduct, User
from users_api import router as users_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(
    db: Optional[Database] = None,
    verifier: Optional[IdentityVerifier] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    """Build the API around the given collaborators.

    Anything not supplied is created from the environment: MongoDB from
    DATABASE_URL, Firebase from FB_SERVICE_KEY and Stripe from
    STRIPE_SECRET_KEY.
    """
    app = FastAPI(title="Loan Marketplace API", version="1.0.0")

    app.state.db = db if db is not None else connect(config.DATABASE_URL, config.DATABASE_NAME)
    app.state.verifier = verifier or FirebaseVerifier(config.FB_SERVICE_KEY)
    app.state.gateway = gateway or StripeGateway(config.STRIPE_SECRET_KEY)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CLIENT_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        body = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
        return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))

    @app.exception_handler(InvalidTransition)
    async def transition_error_handler(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=400, content={"message": str(exc), "status": exc.current})

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"message": "Database error", "error": str(exc)})

    @app.exception_handler(VerifierConfigError)
    async def verifier_config_error_handler(request: Request, exc: VerifierConfigError):
        logger.error("Identity verifier misconfigured: %s", exc)
        return JSONResponse(status_code=500, content={"message": "Authentication unavailable", "error": str(exc)})

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError):
        return JSONResponse(status_code=500, content={"message": "Payment processor error", "error": str(exc)})

    @app.get("/")
    def read_root():
        return {"message": "Loan Marketplace API running"}

    @app.get("/test")
    def test_database():
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
            "database_name": config.DATABASE_NAME,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            if app.state.db is not None:
                response["collections"] = app.state.db.list_collection_names()
                response["database"] = "✅ Connected"
                response["connection_status"] = "Connected"
        except PyMongoError as e:
            response["database"] = f"⚠️ Error: {str(e)[:80]}"
        return response

    @app.get("/schema")
    def get_schema():
        return {
            "user": User.model_json_schema(),
            "loan": LoanProduct.model_json_schema(),
            "loanApplication": LoanApplication.model_json_schema(),
        }

    app.include_router(users_router)
    app.include_router(loans_router)
    app.include_router(applications_router)
    app.include_router(admin_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
