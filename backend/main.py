import logging
import os
import time
from collections import deque
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

try:
    from backend.app.errors import AnalyzerError, ChannelResolutionError, ConfigurationError
    from backend.app.services.analyzer import ChannelAnalyzer
    from backend.app.services.cache import BundleCache
    from backend.app.services.export import rows_to_csv
    from backend.app.services.youtube_client import YouTubeClient
except ModuleNotFoundError:
    from app.errors import AnalyzerError, ChannelResolutionError, ConfigurationError
    from app.services.analyzer import ChannelAnalyzer
    from app.services.cache import BundleCache
    from app.services.export import rows_to_csv
    from app.services.youtube_client import YouTubeClient


# ---------------------------
# Config
# ---------------------------

load_dotenv()

LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


ANALYZE_CACHE_MAX_ENTRIES = env_int("ANALYZE_CACHE_MAX_ENTRIES", 500)
ANALYZE_CACHE_TTL_SECONDS = env_int("ANALYZE_CACHE_TTL_SECONDS", 60 * 60 * 6)  # 6 hours
YOUTUBE_DETAIL_WORKERS = env_int("YOUTUBE_DETAIL_WORKERS", 1)
YOUTUBE_HTTP_TIMEOUT_SECONDS = env_int("YOUTUBE_HTTP_TIMEOUT_SECONDS", 15)
API_RATE_LIMIT_WINDOW_SECONDS = env_int("API_RATE_LIMIT_WINDOW_SECONDS", 60)
API_RATE_LIMIT_MAX_REQUESTS = env_int("API_RATE_LIMIT_MAX_REQUESTS", 30)
API_RATE_LIMIT_BUCKETS: dict[str, deque[float]] = {}

BUNDLE_CACHE = BundleCache(
    max_entries=ANALYZE_CACHE_MAX_ENTRIES,
    ttl_seconds=ANALYZE_CACHE_TTL_SECONDS,
)


def get_youtube_api_key() -> str:
    api_key = os.getenv("YOUTUBE_API_KEY") or os.getenv("YT_API_KEY")
    if not api_key:
        raise ConfigurationError("Missing YOUTUBE_API_KEY in backend/.env")
    return api_key


def build_provider() -> YouTubeClient:
    return YouTubeClient(
        get_youtube_api_key(),
        timeout=YOUTUBE_HTTP_TIMEOUT_SECONDS,
        detail_workers=YOUTUBE_DETAIL_WORKERS,
    )


ANALYZER = ChannelAnalyzer(cache=BUNDLE_CACHE)


def get_analyzer() -> ChannelAnalyzer:
    return ANALYZER


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:3000"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:3000"], True
    return origins, True


# ---------------------------
# Request models
# ---------------------------

class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inputs: list[str] = Field(min_length=1, max_length=10)
    days: int = Field(default=60, ge=7, le=365)
    max_videos: int = Field(default=80, ge=10, le=200, alias="maxVideos")

    @field_validator("inputs")
    @classmethod
    def strip_inputs(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value]
        if any(not item for item in cleaned):
            raise ValueError("inputs must not contain empty strings")
        return cleaned


# ---------------------------
# Rate limiting
# ---------------------------

def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_api_rate_limit(request: Request, scope: str = "analyze") -> None:
    now_ts = time.time()
    key = f"{scope}:{get_client_ip(request)}"
    bucket = API_RATE_LIMIT_BUCKETS.get(key)
    if bucket is None:
        bucket = deque()
        API_RATE_LIMIT_BUCKETS[key] = bucket

    cutoff = now_ts - API_RATE_LIMIT_WINDOW_SECONDS
    while bucket and bucket[0] < cutoff:
        bucket.popleft()

    if len(bucket) >= API_RATE_LIMIT_MAX_REQUESTS:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a minute and try again.",
        )

    bucket.append(now_ts)


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    parts = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        parts.append(f"{field}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Invalid request"


# ---------------------------
# App setup
# ---------------------------

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalyzerError)
async def analyzer_error_handler(_request: Request, exc: AnalyzerError):
    if isinstance(exc, ChannelResolutionError):
        logger.warning("Could not resolve channel input %r: %s", exc.channel_input, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": format_validation_errors(exc.errors())})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


# ---------------------------
# Routes
# ---------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.post("/analyze")
def analyze(payload: AnalyzeRequest, request: Request):
    enforce_api_rate_limit(request)
    started = time.time()
    result = get_analyzer().analyze(
        payload.inputs, payload.days, payload.max_videos, provider=build_provider()
    )
    logger.info(
        "Analyzed %s channel(s), %s rows in %.2fs",
        len(result["channels"]), len(result["rows"]), time.time() - started,
    )
    return result


@app.post("/analyze/export")
def analyze_export(payload: AnalyzeRequest, request: Request):
    enforce_api_rate_limit(request, scope="export")
    result = get_analyzer().analyze(
        payload.inputs, payload.days, payload.max_videos, provider=build_provider()
    )
    return Response(
        content=rows_to_csv(result["rows"]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="all_rows.csv"'},
    )
