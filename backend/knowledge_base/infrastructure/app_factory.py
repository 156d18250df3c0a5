from asyncio import Event
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Dict, List, Optional

import anyio
import fastapi
from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.openapi.utils import get_openapi

from ..modules.common.utils.error_handler import register_exception_handlers
from .config.settings import (
    DatabaseSettings,
    EnvironmentOption,
    EnvironmentSettings,
    Settings,
    get_settings,
)
from .database.session import create_tables
from .logging import (
    configure_logging,
    generate_correlation_id,
    get_logger,
    reset_correlation_id,
    set_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_ID_HEADERS = ("X-Correlation-ID", "X-Request-ID")

LifecycleHook = Callable[[FastAPI], Awaitable[None]]


async def set_threadpool_tokens(number_of_tokens: int = 100) -> None:
    """Configure the number of threadpool tokens for anyio.

    Local embedding runs in worker threads, so this bounds how many model calls
    can run at once across the process.
    """
    limiter = anyio.to_thread.current_default_thread_limiter()
    limiter.total_tokens = number_of_tokens


def lifespan_factory(
    settings: Settings,
    create_tables_on_startup: bool = True,
    on_startup: Optional[LifecycleHook] = None,
    on_shutdown: Optional[LifecycleHook] = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Factory to create a lifespan async context manager for a FastAPI app.

    Args:
        settings: Application settings
        create_tables_on_startup: Whether to create database tables on startup
        on_startup: Called after tables exist, before requests are served
        on_shutdown: Called when the app stops, even if startup failed half way

    Returns:
        An async context manager for FastAPI's lifespan
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        initialization_complete = Event()
        app.state.initialization_complete = initialization_complete

        configure_logging()
        await set_threadpool_tokens()

        try:
            if isinstance(settings, DatabaseSettings) and create_tables_on_startup:
                await create_tables()

            if on_startup is not None:
                await on_startup(app)

            initialization_complete.set()
            logger.info(f"{settings.APP_NAME} started in {settings.ENVIRONMENT.value} mode")
            yield

        finally:
            if on_shutdown is not None:
                await on_shutdown(app)
            logger.info(f"{settings.APP_NAME} stopped")

    return lifespan


def add_correlation_id_middleware(application: FastAPI) -> None:
    """Bind a correlation id to every request and echo it in the response.

    An incoming ``X-Correlation-ID`` or ``X-Request-ID`` header is reused;
    otherwise a new id is generated.
    """

    @application.middleware("http")
    async def correlation_id_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = next(
            (request.headers[header] for header in CORRELATION_ID_HEADERS if request.headers.get(header)),
            None,
        ) or generate_correlation_id()

        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_ID_HEADERS[0]] = correlation_id
        return response


def create_application(
    router: APIRouter,
    settings: Optional[Settings] = None,
    lifespan: Optional[Callable[[FastAPI], AbstractAsyncContextManager[None]]] = None,
    create_tables_on_startup: Optional[bool] = None,
    enable_cors: Optional[bool] = None,
    cors_origins: Optional[List[str]] = None,
    enable_docs_in_production: Optional[bool] = None,
    docs_production_dependency: Optional[Callable[..., Any]] = None,
    enable_gzip: Optional[bool] = None,
    title: Optional[str] = None,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    version: Optional[str] = None,
    **kwargs: Any,
) -> FastAPI:
    """Creates and configures a FastAPI application based on the provided settings.

    Explicit arguments win over settings; settings win over the defaults.

    Args:
        router: The APIRouter containing the routes for the application
        settings: Application settings (uses get_settings() if None)
        lifespan: Optional lifespan function. If None, uses lifespan_factory.
        create_tables_on_startup: Defaults to settings.CREATE_TABLES_ON_STARTUP
        enable_cors: Defaults to settings.CORS_ENABLED
        cors_origins: Defaults to settings.CORS_ORIGINS_LIST
        enable_docs_in_production: Defaults to settings.ENABLE_DOCS_IN_PRODUCTION
        docs_production_dependency: Dependency to protect docs in production
        enable_gzip: Defaults to settings.GZIP_ENABLED
        title: API title, defaults to settings.APP_NAME
        summary: A short summary of the API
        description: API description, defaults to settings.APP_DESCRIPTION
        version: API version, defaults to settings.VERSION
        **kwargs: Additional keyword arguments passed to the FastAPI constructor

    Returns:
        A configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    _create_tables_on_startup = (
        create_tables_on_startup if create_tables_on_startup is not None else settings.CREATE_TABLES_ON_STARTUP
    )
    _enable_cors = enable_cors if enable_cors is not None else settings.CORS_ENABLED
    _cors_origins = cors_origins if cors_origins is not None else settings.CORS_ORIGINS_LIST
    _enable_docs_in_production = (
        enable_docs_in_production if enable_docs_in_production is not None else settings.ENABLE_DOCS_IN_PRODUCTION
    )
    _enable_gzip = enable_gzip if enable_gzip is not None else settings.GZIP_ENABLED

    metadata: Dict[str, Any] = {
        "title": title or settings.APP_NAME,
        "description": description or settings.APP_DESCRIPTION,
        "version": version or settings.VERSION,
    }
    if summary is not None:
        metadata["summary"] = summary

    is_production = isinstance(settings, EnvironmentSettings) and settings.ENVIRONMENT == EnvironmentOption.PRODUCTION
    show_docs = not is_production or _enable_docs_in_production

    # Docs are served by the router below so they can sit behind a dependency.
    kwargs.update(metadata)
    kwargs.update({"docs_url": None, "redoc_url": None, "openapi_url": None})

    if lifespan is None:
        lifespan = lifespan_factory(settings, create_tables_on_startup=_create_tables_on_startup)

    application = FastAPI(lifespan=lifespan, **kwargs)
    application.include_router(router)
    register_exception_handlers(application)

    if _enable_cors:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=_cors_origins,
            allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[CORRELATION_ID_HEADERS[0]],
        )

    if _enable_gzip:
        application.add_middleware(GZipMiddleware, minimum_size=settings.GZIP_MINIMUM_SIZE)

    if settings.LOG_CORRELATION_ID:
        add_correlation_id_middleware(application)

    if show_docs:
        docs_router = APIRouter()

        if docs_production_dependency is not None:
            docs_router = APIRouter(dependencies=[Depends(docs_production_dependency)])

        @docs_router.get(settings.DOCS_URL, include_in_schema=False)
        async def get_swagger_documentation() -> fastapi.responses.HTMLResponse:
            return get_swagger_ui_html(openapi_url=settings.OPENAPI_URL, title=f"{metadata['title']} docs")

        @docs_router.get(settings.REDOC_URL, include_in_schema=False)
        async def get_redoc_documentation() -> fastapi.responses.HTMLResponse:
            return get_redoc_html(openapi_url=settings.OPENAPI_URL, title=f"{metadata['title']} redoc")

        @docs_router.get(settings.OPENAPI_URL, include_in_schema=False)
        async def openapi() -> Dict[str, Any]:
            return get_openapi(
                title=metadata["title"],
                version=metadata["version"],
                description=metadata["description"],
                routes=application.routes,
            )

        application.include_router(docs_router)

    return application
