"""Authorization collaborator: who may create, close and resolve markets.

Authentication is out of scope; callers pass an already-identified actor id.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from poolmarket.errors import AuthorizationError
from poolmarket.models import Market
from poolmarket.storage.accounts import get_account

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


class Authorizer(Protocol):
    def can_create(self, conn: DuckDBPyConnection, actor_id: str) -> bool: ...

    def can_manage(self, conn: DuckDBPyConnection, actor_id: str, market: Market) -> bool: ...

    def is_admin(self, conn: DuckDBPyConnection, actor_id: str) -> bool: ...


class AccountAuthorizer:
    """Platform admins may do anything; creators may manage the markets they own."""

    def is_admin(self, conn: DuckDBPyConnection, actor_id: str) -> bool:
        account = get_account(conn, actor_id)
        return bool(account and account.is_admin)

    def can_create(self, conn: DuckDBPyConnection, actor_id: str) -> bool:
        account = get_account(conn, actor_id)
        return bool(account and (account.is_admin or account.is_creator))

    def can_manage(self, conn: DuckDBPyConnection, actor_id: str, market: Market) -> bool:
        account = get_account(conn, actor_id)
        if account is None:
            return False
        return account.is_admin or (
            market.created_by_creator is not None and market.created_by_creator == actor_id
        )


class AllowAll:
    """Authorizer for trusted in-process callers that enforce access upstream."""

    def is_admin(self, conn: DuckDBPyConnection, actor_id: str) -> bool:
        return True

    def can_create(self, conn: DuckDBPyConnection, actor_id: str) -> bool:
        return True

    def can_manage(self, conn: DuckDBPyConnection, actor_id: str, market: Market) -> bool:
        return True


def ensure_can_manage(authorizer: Authorizer, conn: DuckDBPyConnection, actor_id: str, market: Market) -> None:
    if not authorizer.can_manage(conn, actor_id, market):
        raise AuthorizationError(f"{actor_id} may not manage market {market.market_id}")
