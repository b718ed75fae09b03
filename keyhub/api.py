"""FastAPI application exposing the credential service over HTTP."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from .admins import AdminAuth
from .config import Settings, load_settings
from .database import Database
from .errors import KeyHubError, StoreUnavailable, Unauthorized
from .service import KeyService

logger = logging.getLogger("keyhub.api")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class GenerateKeyRequest(_CamelModel):
    first_name: Optional[str] = Field(default=None, alias="firstName", max_length=100)
    last_name: Optional[str] = Field(default=None, alias="lastName", max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    app_name: Optional[str] = Field(default=None, alias="appName", max_length=100)
    description: Optional[str] = Field(default=None, max_length=1024)
    expiry: Optional[Union[str, int]] = None
    scopes: Optional[List[str]] = None
    prefix: Optional[str] = Field(default=None, max_length=32)


class ValidateKeyRequest(_CamelModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class AdminRegisterRequest(_CamelModel):
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class AdminLoginRequest(_CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


def _error_response(exc: KeyHubError) -> JSONResponse:
    if isinstance(exc, StoreUnavailable):
        # Details stay in the server log.
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=exc.to_dict(),
        )
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=int(exc.status_code), content=exc.to_dict(), headers=headers)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(KeyHubError)
    async def handle_keyhub_error(request: Request, exc: KeyHubError) -> JSONResponse:
        if isinstance(exc, StoreUnavailable):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = sorted(
            {
                str(error["loc"][-1])
                for error in exc.errors()
                if error.get("loc") and error["loc"][0] in {"body", "query"}
            }
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "validation_error", "message": "Invalid request", "fields": fields},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "message": "Internal server error"},
        )


def _build_token_dependency() -> Callable[..., Optional[str]]:
    bearer_security = HTTPBearer(auto_error=False)

    async def dependency(
        credentials: HTTPAuthorizationCredentials | None = Depends(bearer_security),
    ) -> Optional[str]:
        if credentials is None or credentials.scheme.lower() != "bearer":
            return None
        return credentials.credentials

    return dependency


def register_api_routes(
    app: FastAPI,
    service: KeyService,
    *,
    bearer_token: Callable[..., Optional[str]],
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/generate-key", status_code=status.HTTP_201_CREATED)
    def generate_key(request: GenerateKeyRequest) -> Dict[str, Any]:
        return service.issue_credential(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            app_name=request.app_name,
            description=request.description,
            expiry=request.expiry,
            scopes=request.scopes,
            prefix=request.prefix,
        )

    @app.post("/api/validate-key")
    def validate_key(request: ValidateKeyRequest) -> Dict[str, Any]:
        return service.validate_credential(request.api_key)

    @app.get("/api/user-keys")
    def user_keys(email: Optional[str] = Query(default=None)) -> Dict[str, Any]:
        return service.credential_history(email)

    @app.post("/api/admin/register", status_code=status.HTTP_201_CREATED)
    def register_admin(request: AdminRegisterRequest) -> Dict[str, Any]:
        return service.register_admin(request.email, request.password, request.confirm_password)

    @app.post("/api/admin/login")
    def login_admin(request: AdminLoginRequest) -> Dict[str, Any]:
        return service.login_admin(request.email, request.password)

    # Both listings verify the bearer token inside the service call.
    @app.get("/api/admin/users")
    def list_users(token: Optional[str] = Depends(bearer_token)) -> Dict[str, Any]:
        return service.list_users(token)

    @app.get("/api/admin/api-keys")
    def list_keys(token: Optional[str] = Depends(bearer_token)) -> Dict[str, Any]:
        return service.list_keys(token)


def create_app(
    *,
    settings: Settings | None = None,
    database: Database | None = None,
    clock: Callable[[], datetime] | None = None,
    initialize_database: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application for the credential service."""

    settings = settings or load_settings()
    db = database or Database(settings.database_path, timeout=settings.database_timeout)
    if initialize_database:
        db.initialize()

    auth = AdminAuth(db, settings.require_session_secret(), ttl=settings.token_ttl, clock=clock)
    service = KeyService(db, auth, clock=clock)

    app = FastAPI(
        title="KeyHub",
        version="0.1.0",
        description="Issue and validate API keys; administrator inventory views.",
    )
    app.state.settings = settings
    app.state.database = db
    app.state.service = service

    register_error_handlers(app)
    register_api_routes(app, service, bearer_token=_build_token_dependency())

    logger.info("KeyHub API ready (database=%s)", db.path)
    return app


__all__ = ["create_app", "register_api_routes", "register_error_handlers"]
