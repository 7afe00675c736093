"""repo-gate -- FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from functools import partial
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI

from repogate.api.routers.health import router as health_router
from repogate.api.routers.link import router as link_router
from repogate.auth import load_private_key
from repogate.clients import github_client
from repogate.clients.github_client import AppGitHub, UserGitHub
from repogate.config import VERSION, Settings, settings
from repogate.middleware import RequestIDMiddleware
from repogate.middleware.access_log import AccessLogMiddleware
from repogate.middleware.exception_handler import setup_exception_handlers
from repogate.services.grant_service import GrantPipeline

logger = logging.getLogger(__name__)


class _ColorFormatter(logging.Formatter):
    """ANSI-colored log formatter for terminal output."""

    _COLORS = {
        logging.DEBUG:    "\033[36m",     # cyan
        logging.INFO:     "\033[32m",     # green
        logging.WARNING:  "\033[33m",     # yellow
        logging.ERROR:    "\033[31m",     # red
        logging.CRITICAL: "\033[1;31m",   # bold red
    }
    _RESET = "\033[0m"
    _DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self._COLORS.get(record.levelno, "")
        ts = self.formatTime(record, "%H:%M:%S")
        name = record.name.split(".")[-1][:20]
        msg = record.getMessage()
        line = (
            f"{self._DIM}{ts}{self._RESET} "
            f"{color}{record.levelname:<8s}{self._RESET} "
            f"{self._DIM}[{name:>20s}]{self._RESET} "
            f"{color}{msg}{self._RESET}"
        )
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class _PlainFormatter(logging.Formatter):
    """Plain-text formatter for file logs (no ANSI codes)."""

    def format(self, record: logging.LogRecord) -> str:
        ts = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        name = record.name.split(".")[-1][:20]
        line = f"{ts} {record.levelname:<8s} [{name:>20s}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(cfg: Settings) -> None:
    """Colored stderr logging, plus a rotating file when LOG_FILE is set."""
    level = getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ColorFormatter())
    handlers: list[logging.Handler] = [handler]

    if cfg.LOG_FILE:
        log_path = Path(cfg.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            str(log_path),
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(_PlainFormatter())
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # Our own access log replaces uvicorn's; httpx would log full URLs.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_pipeline(cfg: Settings, private_key: str) -> GrantPipeline:
    """Assemble the grant pipeline from settings and the app's private key."""
    app_client = AppGitHub(
        app_id=cfg.GITHUB_APP_ID,
        installation_id=cfg.GITHUB_INSTALLATION_ID,
        private_key=private_key,
        api_base=cfg.GITHUB_API_BASE,
    )
    return GrantPipeline(
        app_client=app_client,
        oauth_client_id=cfg.GITHUB_OAUTH_ID,
        oauth_client_secret=cfg.GITHUB_OAUTH_SECRET,
        owner=cfg.target_owner,
        name=cfg.target_name,
        gate_org=cfg.GATE_ORG,
        gate_team_slug=cfg.GATE_TEAM_SLUG,
        enrollment_url=cfg.ENROLLMENT_URL,
        repo_url=cfg.target_repo_url,
        user_client_factory=partial(UserGitHub, api_base=cfg.GITHUB_API_BASE),
        token_url=cfg.GITHUB_TOKEN_URL,
    )


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Application lifespan: startup and shutdown hooks."""
    configure_logging(settings)

    if "pytest" not in sys.modules:
        # A missing or unreadable key must stop the process, not the first request.
        private_key = load_private_key(settings.GITHUB_APP_KEY_PATH)
        application.state.pipeline = build_pipeline(settings, private_key)
        logger.info(
            "Granting access to %s/%s for members of %s/%s",
            settings.target_owner,
            settings.target_name,
            settings.GATE_ORG,
            settings.GATE_TEAM_SLUG,
        )
    yield
    await github_client.close_client()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="repo-gate",
        version=VERSION,
        description="Grants gated members read access to a private repository",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # Register all global exception handlers (structured JSON responses
    # with request_id tracing -- see repogate/middleware/exception_handler.py).
    setup_exception_handlers(application)

    # AccessLogMiddleware innermost, RequestIDMiddleware outermost.
    application.add_middleware(AccessLogMiddleware)
    application.add_middleware(RequestIDMiddleware)

    application.include_router(health_router)
    application.include_router(link_router)
    return application


app = create_app()
