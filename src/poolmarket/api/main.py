"""FastAPI surface over the pricing, trading and settlement paths."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import structlog
from duckdb import DuckDBPyConnection
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from poolmarket.api.schemas import (
    AccountResponse,
    CreateAccountRequest,
    CreateMarketRequest,
    DeleteResponse,
    EntriesResponse,
    ErrorResponse,
    HealthResponse,
    MarketResponse,
    MarketsListResponse,
    PlaceEntryRequest,
    ResolveRequest,
    ResolveResponse,
    TransactionsResponse,
)
from poolmarket.auth import AccountAuthorizer, Authorizer
from poolmarket.clock import Clock, system_clock
from poolmarket.config import Settings, get_settings
from poolmarket.errors import (
    AuthorizationError,
    InvalidInputError,
    NotFoundError,
    PoolMarketError,
    StateConflictError,
)
from poolmarket.models import Entry, EntryStatus, PredictionStatus
from poolmarket.settlement.engine import resolve_market
from poolmarket.storage.accounts import list_transactions
from poolmarket.storage.db import get_connection, init_schema
from poolmarket.storage.entries import list_account_entries
from poolmarket.storage.markets import list_markets as storage_list_markets
from poolmarket.trading import (
    archive_market,
    close_market,
    create_market,
    delete_market,
    get_account_or_raise,
    get_market_or_raise,
    open_account,
    place_entry,
    quote_market,
)

log = structlog.get_logger(__name__)

# Set by run_api() before uvicorn imports the app.
_config_profile: str | None = None
_config_dir: Path | None = None
_db_path: str | None = None


def get_app_settings() -> Settings:
    settings = get_settings(_config_profile, _config_dir)
    if _db_path:
        settings.storage["db_path"] = _db_path
    return settings


def get_conn(settings: Annotated[Settings, Depends(get_app_settings)]) -> Iterator[DuckDBPyConnection]:
    conn = get_connection(settings.db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_clock() -> Clock:
    return system_clock


def get_authorizer() -> Authorizer:
    return AccountAuthorizer()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_app_settings()
    conn = get_connection(settings.db_path)
    try:
        init_schema(conn)
    finally:
        conn.close()
    yield


app = FastAPI(title="poolmarket API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

_STATUS_CODES: list[tuple[type[PoolMarketError], int]] = [
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (StateConflictError, 409),
    (InvalidInputError, 400),
]


def _error_json(code: str, message: str, status_code: int = 404, retryable: bool = False) -> JSONResponse:
    """Return consistent error JSON: { detail, code, retryable }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code, "retryable": retryable},
    )


@app.exception_handler(PoolMarketError)
async def _pool_market_error(request: Request, exc: PoolMarketError) -> JSONResponse:
    status_code = 503 if exc.retryable else 500
    for cls, code in _STATUS_CODES:
        if isinstance(exc, cls):
            status_code = code
            break
    if status_code >= 500:
        log.error("api.request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return _error_json(exc.code, exc.message, status_code, exc.retryable)


Conn = Annotated[DuckDBPyConnection, Depends(get_conn)]
ActorId = Annotated[str, Header(alias="X-Actor-Id", min_length=1)]


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@app.get("/markets", response_model=MarketsListResponse)
def markets_list(
    conn: Conn,
    status: PredictionStatus | None = Query(None),
    category: str | None = None,
    country: str | None = None,
    creator_id: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> MarketsListResponse:
    """List markets with optional filters and limit/offset. Every status unless ``status`` is given."""
    all_markets = storage_list_markets(conn, status=status, category=category, country=country, creator_id=creator_id)
    return MarketsListResponse(markets=all_markets[offset : offset + limit], total=len(all_markets))


@app.get(
    "/markets/{market_id}",
    response_model=MarketResponse,
    responses={404: {"description": "Market not found", "model": ErrorResponse}},
)
def market_detail(
    market_id: str,
    conn: Conn,
    clock: Annotated[Clock, Depends(get_clock)],
) -> MarketResponse:
    """Market row plus prices re-quoted from current liquidity."""
    market = get_market_or_raise(conn, market_id)
    return MarketResponse(market=market, quoted_options=quote_market(market, now=clock.now()))


@app.post("/markets", response_model=MarketResponse)
def markets_create(
    body: CreateMarketRequest,
    actor_id: ActorId,
    conn: Conn,
    settings: Annotated[Settings, Depends(get_app_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> MarketResponse:
    market = create_market(
        conn,
        actor_id,
        question=body.question,
        options=[o.model_dump() for o in body.options],
        closes_at=body.closes_at,
        type=body.type,
        multiplier=body.multiplier,
        category=body.category,
        country=body.country,
        resolution_source=body.resolution_source,
        seed_amount=settings.seed_liquidity,
        authorizer=authorizer,
        clock=clock,
    )
    return MarketResponse(market=market, quoted_options=market.options)


@app.post("/markets/{market_id}/entries", response_model=Entry)
def markets_place_entry(
    market_id: str,
    body: PlaceEntryRequest,
    actor_id: ActorId,
    conn: Conn,
    settings: Annotated[Settings, Depends(get_app_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> Entry:
    return place_entry(conn, market_id, actor_id, body.option_id, clock=clock, base_payout=settings.fixed_payout)


@app.post("/markets/{market_id}/close", response_model=MarketResponse)
def markets_close(
    market_id: str,
    actor_id: ActorId,
    conn: Conn,
    clock: Annotated[Clock, Depends(get_clock)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> MarketResponse:
    market = close_market(conn, market_id, actor_id, authorizer=authorizer)
    return MarketResponse(market=market, quoted_options=quote_market(market, now=clock.now()))


@app.post(
    "/markets/{market_id}/resolve",
    response_model=ResolveResponse,
    responses={
        409: {"description": "Market already resolved or being resolved", "model": ErrorResponse},
        503: {"description": "Storage failure, safe to retry", "model": ErrorResponse},
    },
)
def markets_resolve(
    market_id: str,
    body: ResolveRequest,
    actor_id: ActorId,
    conn: Conn,
    settings: Annotated[Settings, Depends(get_app_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> ResolveResponse:
    result = resolve_market(
        conn,
        market_id,
        body.winning_option_id,
        actor_id,
        config=settings.settlement_config(),
        authorizer=authorizer,
        clock=clock,
    )
    return ResolveResponse(**asdict(result))


@app.post("/markets/{market_id}/archive", response_model=MarketResponse)
def markets_archive(
    market_id: str,
    actor_id: ActorId,
    conn: Conn,
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> MarketResponse:
    market = archive_market(conn, market_id, actor_id, authorizer=authorizer)
    return MarketResponse(market=market, quoted_options=market.options)


@app.delete("/markets/{market_id}", response_model=DeleteResponse)
def markets_delete(
    market_id: str,
    actor_id: ActorId,
    conn: Conn,
    clock: Annotated[Clock, Depends(get_clock)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
) -> DeleteResponse:
    refunded = delete_market(conn, market_id, actor_id, authorizer=authorizer, clock=clock)
    return DeleteResponse(market_id=market_id, refunded_entries=refunded)


@app.post("/accounts", response_model=AccountResponse)
def accounts_create(
    body: CreateAccountRequest,
    conn: Conn,
    settings: Annotated[Settings, Depends(get_app_settings)],
    clock: Annotated[Clock, Depends(get_clock)],
    authorizer: Annotated[Authorizer, Depends(get_authorizer)],
    actor_id: Annotated[str | None, Header(alias="X-Actor-Id")] = None,
) -> AccountResponse:
    """Open an account. Admin and creator accounts can only be opened by an admin."""
    if (body.is_admin or body.is_creator) and not (actor_id and authorizer.is_admin(conn, actor_id)):
        raise AuthorizationError("only admins may open admin or creator accounts")
    account = open_account(
        conn,
        body.account_id,
        body.name,
        welcome_bonus=settings.welcome_bonus,
        is_admin=body.is_admin,
        is_creator=body.is_creator,
        creator_name=body.creator_name,
        clock=clock,
    )
    return AccountResponse(account=account)


@app.get("/accounts/{account_id}", response_model=AccountResponse)
def accounts_detail(account_id: str, conn: Conn) -> AccountResponse:
    return AccountResponse(account=get_account_or_raise(conn, account_id))


@app.get("/accounts/{account_id}/entries", response_model=EntriesResponse)
def accounts_entries(
    account_id: str,
    conn: Conn,
    status: EntryStatus | None = None,
) -> EntriesResponse:
    get_account_or_raise(conn, account_id)
    return EntriesResponse(entries=list_account_entries(conn, account_id, status=status))


@app.get("/accounts/{account_id}/transactions", response_model=TransactionsResponse)
def accounts_transactions(
    account_id: str,
    conn: Conn,
    limit: int = Query(50, ge=1, le=500),
) -> TransactionsResponse:
    get_account_or_raise(conn, account_id)
    return TransactionsResponse(transactions=list_transactions(conn, account_id, limit=limit))


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    config_dir: Path | None = None,
    db_path: str | None = None,
) -> None:
    global _config_profile, _config_dir, _db_path
    _config_profile = profile
    _config_dir = config_dir
    _db_path = db_path
    import uvicorn

    uvicorn.run("poolmarket.api.main:app", host=host, port=port, reload=False)
