from typing import Annotated, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from api.validation import RequestValidator
from db.repositories import RateSnapshotRepository
from services.quote_fetcher import QuoteFetcher
from services.rate_service import RateService


def get_session(request: Request) -> Generator[Session, None, None]:
    with request.app.state.sessionmaker() as session:
        yield session


def get_snapshot_repository(session: Annotated[Session, Depends(get_session)]) -> RateSnapshotRepository:
    return RateSnapshotRepository(session)


def get_quote_fetcher(request: Request) -> QuoteFetcher:
    fetcher: QuoteFetcher = request.app.state.fetcher
    return fetcher


def get_request_validator(request: Request) -> RequestValidator:
    validator: RequestValidator = request.app.state.validator
    return validator


def get_rate_service(
    store: Annotated[RateSnapshotRepository, Depends(get_snapshot_repository)],
    fetcher: Annotated[QuoteFetcher, Depends(get_quote_fetcher)],
) -> RateService:
    return RateService(store=store, fetcher=fetcher)
