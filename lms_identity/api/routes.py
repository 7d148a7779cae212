"""HTTP route definitions for the identity service."""

from __future__ import annotations

import logging
import secrets

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..config import Settings, get_settings
from ..domain.account import AccountRecord
from ..domain.contracts import SeedAccountProvider, StoreError
from ..domain.reference import classify_reference
from ..domain.resolver import IdentityResolver
from ..repository import PostgresAccountStore
from ..security.rate_limit import RateLimiter
from ..security.tokens import decode_access_token, issue_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class AccountResponse(BaseModel):
    """Serialised representation of an `AccountRecord`."""

    id: str
    email: str
    role: str

    @classmethod
    def from_domain(cls, account: AccountRecord) -> "AccountResponse":
        return cls(id=account.id, email=account.email, role=account.role.value)


class ResolveResponse(BaseModel):
    reference: str
    kind: str
    canonical_id: str


class MeResponse(BaseModel):
    canonical_id: str
    account: AccountResponse | None = None


class TokenRequest(BaseModel):
    """JSON body used to exchange a user reference for an access token."""

    user: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    canonical_id: str


class SeedAccountSummary(BaseModel):
    email: str
    role: str


class SeedAccountsResponse(BaseModel):
    accounts: list[SeedAccountSummary]


class DemoMapping(BaseModel):
    demo_id: str
    email: str
    db_id: str | None = None


class DemoMappingsResponse(BaseModel):
    mappings: list[DemoMapping]


def get_resolver(request: Request) -> IdentityResolver:
    """Resolve the `IdentityResolver` stored on the FastAPI application state."""
    return request.app.state.resolver


def get_store(request: Request) -> PostgresAccountStore:
    return request.app.state.account_store


def get_seed_provider(request: Request) -> SeedAccountProvider:
    return request.app.state.seed_provider


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def _enforce_rate_limit(limiter: RateLimiter, key: str) -> None:
    if not limiter.allow(key):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="rate limited")


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def get_canonical_user_id(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    user_id: str | None = Query(default=None, alias="userId"),
    resolver: IdentityResolver = Depends(get_resolver),
) -> str:
    """Turn the caller's user reference into a canonical account id or reject with 401.

    The reference is taken from a bearer token's ``sub`` claim, then the
    ``X-User-Id`` header, then the ``userId`` query parameter.
    """
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid authorization header")
        try:
            reference = decode_access_token(token.strip())["sub"]
        except jwt.PyJWTError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid access token") from exc
    else:
        reference = x_user_id or user_id

    if not reference or not reference.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing user reference")
    canonical_id = await resolver.resolve(reference)
    if canonical_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="user reference could not be canonicalized",
        )
    return canonical_id


@router.get("/identity/resolve", response_model=ResolveResponse)
async def resolve_reference(
    request: Request,
    ref: str = Query(..., min_length=1),
    resolver: IdentityResolver = Depends(get_resolver),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> ResolveResponse:
    """Resolve a raw user reference to its canonical account id."""
    _enforce_rate_limit(limiter, f"resolve:{_client_key(request)}")
    reference = classify_reference(ref)
    canonical_id = await resolver.resolve(ref)
    if reference is None or canonical_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="reference could not be resolved")
    return ResolveResponse(reference=ref.strip(), kind=reference.kind, canonical_id=canonical_id)


@router.get("/me", response_model=MeResponse)
async def who_am_i(
    canonical_id: str = Depends(get_canonical_user_id),
    store: PostgresAccountStore = Depends(get_store),
) -> MeResponse:
    """Return the caller's canonical id and, when stored, its account row."""
    try:
        account = await store.get_account(canonical_id)
    except StoreError as exc:
        logger.warning("account lookup for %s failed: %s", canonical_id, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="account store unavailable") from exc
    return MeResponse(
        canonical_id=canonical_id,
        account=AccountResponse.from_domain(account) if account else None,
    )


@router.get("/accounts/{reference}", response_model=AccountResponse)
async def get_account(
    reference: str,
    resolver: IdentityResolver = Depends(get_resolver),
    store: PostgresAccountStore = Depends(get_store),
) -> AccountResponse:
    """Retrieve the stored account a reference resolves to."""
    canonical_id = await resolver.resolve(reference)
    if canonical_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account not found")
    try:
        account = await store.get_account(canonical_id)
    except StoreError as exc:
        logger.warning("account lookup for %s failed: %s", canonical_id, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="account store unavailable") from exc
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account not found")
    return AccountResponse.from_domain(account)


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    request: Request,
    payload: TokenRequest,
    resolver: IdentityResolver = Depends(get_resolver),
    store: PostgresAccountStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> TokenResponse:
    """Issue an access token for the stored account behind ``payload.user``.

    Opaque ids resolve without a store check, so the row is fetched before
    anything is signed.
    """
    _enforce_rate_limit(limiter, f"token:{_client_key(request)}")
    canonical_id = await resolver.resolve(payload.user)
    if canonical_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account not found")
    try:
        account = await store.get_account(canonical_id)
    except StoreError as exc:
        logger.warning("account lookup for %s failed: %s", canonical_id, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="account store unavailable") from exc
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="account not found")
    access_token, expires_in = issue_access_token(account.id)
    return TokenResponse(access_token=access_token, expires_in=expires_in, canonical_id=canonical_id)


@router.get("/seed-accounts", response_model=SeedAccountsResponse)
def list_seed_accounts(seeds: SeedAccountProvider = Depends(get_seed_provider)) -> SeedAccountsResponse:
    """List the identities that can sign in, for display on the login page."""
    return SeedAccountsResponse(
        accounts=[
            SeedAccountSummary(email=seed.email, role=seed.role.value)
            for seed in seeds.list_seed_accounts()
        ]
    )


@router.get("/_debug/demo-mappings", response_model=DemoMappingsResponse)
async def demo_mappings(
    admin_secret_query: str | None = Query(default=None, alias="admin_secret"),
    admin_secret_header: str | None = Header(default=None, alias="Admin-Secret"),
    x_admin_secret: str | None = Header(default=None, alias="X-Admin-Secret"),
    admin_secret_raw: str | None = Header(default=None, alias="admin_secret", convert_underscores=False),
    settings: Settings = Depends(get_settings),
    seeds: SeedAccountProvider = Depends(get_seed_provider),
    store: PostgresAccountStore = Depends(get_store),
) -> DemoMappingsResponse:
    """Report which seed identities already have account rows. Never provisions."""
    provided = admin_secret_query or admin_secret_header or x_admin_secret or admin_secret_raw or ""
    if not settings.admin_secret or not secrets.compare_digest(provided.encode("utf-8"), settings.admin_secret.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="admin secret required")

    accounts = seeds.list_seed_accounts()
    try:
        found = await store.find_accounts_by_emails([seed.email for seed in accounts])
    except StoreError as exc:
        logger.warning("demo mapping lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="account store unavailable") from exc

    by_email = {record.email.lower(): record.id for record in found}
    return DemoMappingsResponse(
        mappings=[
            DemoMapping(demo_id=seed.legacy_id, email=seed.email, db_id=by_email.get(seed.email.lower()))
            for seed in accounts
        ]
    )
