"""FastAPI server exposing wager pricing, settlement and public settings."""

import logging
from collections.abc import Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from wagr import __version__
from wagr.calculations import format_return_multiplier, format_return_percentage
from wagr.config import Settings, get_settings
from wagr.currency import Currency, format_currency
from wagr.exceptions import ErrorCode, RateLimitExceededError, WagrError
from wagr.models import MAX_STAKE_AMOUNT, WagerPoolSnapshot, WagerWithEntries
from wagr.observability import initialize_logfire
from wagr.rate_limit import (
    MemoryRateLimitStore,
    RateLimiter,
    SQLRateLimitStore,
    get_client_ip,
)
from wagr.settlement import settle_wager

logger = logging.getLogger(__name__)


class PotentialReturnsRequest(BaseModel):
    """Pool snapshot as sent by clients; fee falls back to the platform rate."""

    entry_amount: float = Field(gt=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    side_a_total: float = Field(default=0.0, ge=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    side_b_total: float = Field(default=0.0, ge=0, le=MAX_STAKE_AMOUNT, allow_inf_nan=False)
    fee_percentage: float | None = Field(default=None, ge=0, lt=1, allow_inf_nan=False)
    currency: Currency | None = None


def success_response(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def validation_details(errors: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Keep location, message and type; rejected inputs may not be JSON-safe (NaN)."""
    return [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in errors
    ]


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Use the SQL store when a database is configured, else process memory."""
    if settings.database_url:
        logger.info("Rate limiting backed by database")
        return RateLimiter(SQLRateLimitStore.from_url(settings.database_url))
    return RateLimiter(MemoryRateLimitStore())


def enforce_rate_limit(request: Request, response: Response) -> None:
    """Dependency counting the request against the caller's API limit."""
    settings: Settings = request.app.state.settings
    if not settings.rate_limits.enabled:
        return

    rule = settings.rate_limits.api_requests
    fallback = request.client.host if request.client else None
    identifier = get_client_ip(request.headers, fallback)

    result = request.app.state.limiter.check(
        identifier, request.url.path, rule.limit, rule.window
    )
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at.timestamp())),
    }

    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds)
        raise RateLimitExceededError(
            "Too many requests. Please try again later.",
            headers=headers,
            details={"reset_at": result.reset_at.isoformat()},
        )

    response.headers.update(headers)


def create_app(
    settings: Settings | None = None,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the API application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting Wagr API {__version__} ({settings.environment})")
        yield
        logger.info("Shutting down Wagr API")

    app = FastAPI(
        title="Wagr API",
        description="Pari-mutuel wager pricing and settlement",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.limiter = limiter or build_rate_limiter(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    initialize_logfire(settings, app)

    @app.exception_handler(WagrError)
    async def handle_wagr_error(request: Request, exc: WagrError):
        logger.info(f"{request.method} {request.url.path} -> {exc.code.value}: {exc.message}")
        return error_response(
            exc.code.value,
            exc.message,
            status_code=exc.status_code,
            details=exc.details,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return error_response(
            ErrorCode.VALIDATION_ERROR.value,
            "Invalid request",
            status_code=400,
            details=validation_details(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return error_response(
            ErrorCode.INTERNAL_ERROR.value,
            "An unexpected error occurred",
            status_code=500,
        )

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "service": "wagr-api",
            "version": __version__,
            "environment": settings.environment,
        }

    @app.get("/api/settings/public", tags=["Settings"])
    async def public_settings():
        """Fee rates and display defaults clients need before quoting."""
        return success_response({
            "wager_platform_fee_percentage": settings.fees.wager_platform_fee_percentage,
            "quiz_platform_fee_percentage": settings.fees.quiz_platform_fee_percentage,
            "default_currency": settings.wagers.default_currency.value,
            "default_entry_amount": settings.wagers.default_entry_amount,
        })

    @app.post(
        "/api/wagers/potential-returns",
        tags=["Wagers"],
        dependencies=[Depends(enforce_rate_limit)],
    )
    async def potential_returns(body: PotentialReturnsRequest):
        """Quote what an entry would win on either side."""
        fee = body.fee_percentage
        if fee is None:
            fee = settings.fees.wager_platform_fee_percentage
        currency = body.currency or settings.wagers.default_currency

        snapshot = WagerPoolSnapshot(
            entry_amount=body.entry_amount,
            side_a_total=body.side_a_total,
            side_b_total=body.side_b_total,
            fee_percentage=fee,
        )
        returns = snapshot.calculate()

        return success_response({
            **returns.model_dump(),
            "fee_percentage": fee,
            "currency": currency.value,
            "formatted": {
                "entry_amount": format_currency(body.entry_amount, currency),
                "side_a_potential": format_currency(returns.side_a_potential, currency),
                "side_b_potential": format_currency(returns.side_b_potential, currency),
                "side_a_return_multiplier": format_return_multiplier(returns.side_a_return_multiplier),
                "side_b_return_multiplier": format_return_multiplier(returns.side_b_return_multiplier),
                "side_a_return_percentage": format_return_percentage(returns.side_a_return_percentage),
                "side_b_return_percentage": format_return_percentage(returns.side_b_return_percentage),
                "best_return_multiplier": format_return_multiplier(returns.best_return_multiplier),
            },
        })

    @app.post(
        "/api/wagers/settlement",
        tags=["Wagers"],
        dependencies=[Depends(enforce_rate_limit)],
    )
    async def settlement(body: WagerWithEntries):
        """Compute the payouts for a wager with a declared winning side."""
        result = settle_wager(body.wager, body.entries)
        return success_response(result.model_dump(mode="json"))

    return app


app = create_app()
