from ..infrastructure.app_factory import create_application, lifespan_factory
from ..infrastructure.config.settings import get_settings
from .api import router as api_router
from .api.dependencies import close_resources, open_resources

settings = get_settings()

app = create_application(
    router=api_router,
    settings=settings,
    lifespan=lifespan_factory(
        settings,
        create_tables_on_startup=settings.CREATE_TABLES_ON_STARTUP,
        on_startup=open_resources,
        on_shutdown=close_resources,
    ),
    summary="Document knowledge base with semantic search and cited chat",
    description="""
    # Knowledge Base API

    Upload documents and ask questions about them:

    * **Ingestion**: documents are split into overlapping chunks and embedded
    * **Search**: semantic search with optional graph expansion over linked chunks
    * **Chat**: answers grounded in retrieved passages, with `[doc-<id>]` citations
    * **Collections**: group documents and search within a group

    Vector storage is pluggable: in-memory, PostgreSQL with pgvector, or Qdrant.
    """,
)
