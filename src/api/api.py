import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Annotated, Any, AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session, sessionmaker

from api.dependencies import get_rate_service, get_request_validator
from api.validation import PayloadValidationError, RequestValidator
from config import AppSettings, config
from db.db import init_engine
from db.repositories import StoreError
from services.coinbase_source import CoinbaseQuoteFetcher
from services.quote_fetcher import QuoteFetcher
from services.rate_service import RateService, RatesUnavailableError
from services.scheduler import FetchScheduler

logger = logging.getLogger(__name__)

HEALTH_MESSAGE = "Backend is very healthy!"


def create_app(
    settings: AppSettings | None = None,
    *,
    fetcher: QuoteFetcher | None = None,
    session_factory: sessionmaker[Session] | None = None,
    start_scheduler: bool | None = None,
) -> FastAPI:
    """Build the HTTP app; collaborators not passed in are created from ``settings`` at startup."""

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
        resolved = settings or config()
        engine = None
        factory = session_factory
        if factory is None:
            engine = init_engine(resolved.db_echo, db_file=resolved.db_file)
            factory = sessionmaker(engine)
        resolved_fetcher = fetcher or CoinbaseQuoteFetcher.from_settings(resolved)

        fastapi_app.state.sessionmaker = factory
        fastapi_app.state.fetcher = resolved_fetcher
        fastapi_app.state.validator = RequestValidator()

        scheduler: FetchScheduler | None = None
        run_scheduler = resolved.scheduler_enabled if start_scheduler is None else start_scheduler
        if run_scheduler:
            scheduler = FetchScheduler(
                fetcher=resolved_fetcher,
                session_factory=factory,
                interval_seconds=resolved.fetch_interval_seconds,
                retention_days=resolved.retention_days,
            )
            scheduler.start()
        fastapi_app.state.scheduler = scheduler

        yield

        if scheduler is not None:
            scheduler.stop()
        if engine is not None:
            engine.dispose()

    fastapi_app = FastAPI(title="Exchange rates", lifespan=lifespan)

    @fastapi_app.middleware("http")
    async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start_time = perf_counter()
        response = await call_next(request)
        process_time = perf_counter() - start_time
        logger.debug("Request time: %s %s: %.4fs", request.method, request.url, process_time)
        return response

    @fastapi_app.exception_handler(PayloadValidationError)
    async def payload_validation_handler(request: Request, exc: PayloadValidationError) -> PlainTextResponse:
        return PlainTextResponse(str(exc), status_code=422)

    @fastapi_app.get("/", response_class=PlainTextResponse)
    def health() -> str:
        return HEALTH_MESSAGE

    @fastapi_app.get("/rates")
    def get_rates(
        service: Annotated[RateService, Depends(get_rate_service)],
        validator: Annotated[RequestValidator, Depends(get_request_validator)],
        base: str = "",
    ) -> dict[str, dict[str, str | None]]:
        query = validator.rates_query(base=base)
        try:
            matrix = service.latest_matrix(query.presentation)
        except StoreError as exc:
            logger.exception("Reading latest rates failed")
            raise HTTPException(status_code=503, detail="rates data unavailable") from exc
        except RatesUnavailableError as exc:
            logger.warning("Rates requested before any data was available: %s", exc)
            raise HTTPException(status_code=503, detail="rates data unavailable") from exc
        return matrix.to_payload()

    @fastapi_app.get("/historical-rates")
    def get_historical_rates(
        service: Annotated[RateService, Depends(get_rate_service)],
        validator: Annotated[RequestValidator, Depends(get_request_validator)],
        baseCurrency: str | None = None,  # noqa: N803
        targetCurrency: str | None = None,  # noqa: N803
        start: str | None = None,
        end: str | None = None,
    ) -> dict[str, list[dict[str, Any]]]:
        query = validator.historical_query(
            base_currency=baseCurrency,
            target_currency=targetCurrency,
            start=start,
            end=end,
        )
        try:
            points = list(service.historical_series(query.base_currency, query.target_currency, query.start, query.end))
        except StoreError as exc:
            logger.exception("Reading historical rates failed")
            raise HTTPException(status_code=422, detail="historical rates lookup failed") from exc

        results = [{"Timestamp": point.timestamp, "Value": point.display} for point in points if not point.is_degenerate]
        return {"Results": results}

    return fastapi_app


app = create_app()
