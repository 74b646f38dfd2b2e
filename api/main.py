"""Token Pulse — FastAPI REST API."""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from api import handlers
from common.logger import get_logger, new_request_id
from common.models import RepoHealth, TokenCreate, TokensPage
from config.settings import (
    CIRCULATING_SUPPLY,
    RATE_LIMIT_INTERVAL,
    RATE_LIMIT_MAX,
    TOTAL_SUPPLY,
)
from ingest.birdeye import BirdeyeIngestor
from ingest.github import GitHubIngestor
from storage.cache import create_cache, rate_limit
from storage.database import DuplicateTokenError, init_db

logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    await app.state.cache.close()


app = FastAPI(title="Token Pulse API", version="0.1.0", lifespan=lifespan)
app.state.cache = create_cache()
app.state.birdeye = BirdeyeIngestor()
app.state.github = GitHubIngestor()


def client_ip(request: Request) -> str:
    """First hop of x-forwarded-for, after x-real-ip; the socket peer otherwise."""
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    return (request.headers.get("x-real-ip")
            or forwarded
            or (request.client.host if request.client else "127.0.0.1"))


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag the request with an id and enforce the per-client sliding window."""
    new_request_id()
    ip = client_ip(request)
    result = await rate_limit(request.app.state.cache, f"{ip}-{request.url.path}",
                              RATE_LIMIT_INTERVAL, RATE_LIMIT_MAX)
    if not result.success:
        logger.warning(f"Rate limit hit for {ip} on {request.url.path}")
        return JSONResponse(
            {"error": "Too Many Requests", "message": "Please try again later"},
            status_code=429, headers=result.headers(),
        )
    response = await call_next(request)
    response.headers.update(result.headers())
    return response


# Must stay outermost: 429s from the limiter need CORS headers too
app.add_middleware(CORSMiddleware,
    allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


# ── API routes (on a shared router, mounted at both "/" and "/api") ───────────

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

@router.get("/tokens", response_model=TokensPage)
async def get_tokens(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=handlers.MAX_PAGE_SIZE),
    type: Literal["all", "agent", "framework", "application", "meme", "kol", "defi"] = "all",
    chain: str = "all",
    ecosystem: str = "all",
    sort: Optional[Literal["price", "price_change_24h", "market_cap", "breakout_score"]] = None,
    direction: Literal["asc", "desc"] = "desc",
):
    """Paginated token list decorated with breakout scores."""
    try:
        return await handlers.list_tokens(
            request.app.state.cache, page=page, page_size=page_size, token_type=type,
            chain=chain, ecosystem=ecosystem, sort=sort, direction=direction,
        )
    except Exception as e:
        logger.error(f"Error fetching tokens: {e}")
        raise HTTPException(500, "Failed to fetch tokens")

@router.post("/tokens", status_code=201)
async def post_token(payload: TokenCreate):
    try:
        token_id = await handlers.create_token(payload)
    except DuplicateTokenError as e:
        raise HTTPException(409, str(e))
    return {"success": True, "id": token_id}

@router.get("/updatePrices")
async def update_prices(request: Request):
    try:
        return await handlers.refresh_prices(request.app.state.cache, request.app.state.birdeye)
    except Exception as e:
        logger.error(f"Error updating prices: {e}")
        raise HTTPException(500, "Failed to update prices")

@router.get("/github-repo-info", response_model=RepoHealth)
async def github_repo_info(request: Request, repo: Optional[str] = None):
    if not repo:
        raise HTTPException(400, "Repository URL is required")
    try:
        return await handlers.repo_health(request.app.state.cache, request.app.state.github, repo)
    except handlers.InvalidRepositoryUrl:
        raise HTTPException(400, "Invalid GitHub repository URL")
    except handlers.UpstreamUnavailable as e:
        logger.error(f"Error fetching repository data: {e}")
        raise HTTPException(502, "Failed to fetch repository data")

@router.get("/total_supply", response_class=PlainTextResponse)
def total_supply():
    return TOTAL_SUPPLY

@router.get("/get_circulating_supply", response_class=PlainTextResponse)
def circulating_supply():
    return CIRCULATING_SUPPLY

# Mount routes at root (for nginx) and at /api (for direct browser access)
app.include_router(router)
app.include_router(router, prefix="/api")
