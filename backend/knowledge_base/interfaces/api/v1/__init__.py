from fastapi import APIRouter

from .chat import router as chat_router
from .collections import router as collections_router
from .documents import router as documents_router
from .knowledge_index import router as knowledge_index_router
from .search import router as search_router

router = APIRouter(prefix="/v1")
router.include_router(documents_router)
router.include_router(collections_router)
router.include_router(search_router)
router.include_router(chat_router)
router.include_router(knowledge_index_router)


@router.get(
    "/health",
    summary="API Health Check",
    description="Simple health check endpoint for monitoring and container orchestration.",
    responses={
        200: {"description": "API is healthy and responding"},
    },
)
async def health_check():
    """Health check endpoint for Docker health checks."""
    return {"status": "healthy", "message": "Knowledge Base API is running"}
