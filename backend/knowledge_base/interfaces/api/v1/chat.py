"""Chat endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ....modules.chat.schemas import ChatRequest, ChatResponse
from ....modules.chat.service import ChatService
from ....modules.document.services import DocumentService
from ....modules.retrieval.schemas import SearchResult
from ..dependencies import DbSession, get_chat_service, get_document_service

router = APIRouter(prefix="/chat", tags=["Chat"])


@router.post(
    "",
    summary="Ask a Question",
    description="""
    Answers a message with the chat model, grounded in the passages most
    relevant to it. Pass `document_id` to talk about one document. The answer
    ends with a `[doc-<id>]` marker for each document that supplied context.
    """,
    responses={
        200: {"description": "Answer with citations"},
        404: {"description": "Document or collection not found"},
        422: {"description": "Blank message"},
        503: {"description": "Chat model unavailable"},
    },
)
async def chat(
    request: ChatRequest,
    db: DbSession,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
    document_service: Annotated[DocumentService, Depends(get_document_service)],
) -> ChatResponse:
    document_id = str(request.document_id) if request.document_id else None
    if request.document_id is not None:
        await document_service.get_document(request.document_id, db)

    result = await chat_service.chat(
        request.message,
        user_id=request.user_id,
        document_id=document_id,
        collection_id=str(request.collection_id) if request.collection_id else None,
        use_graph=request.use_graph,
    )
    return ChatResponse(
        answer=result.answer,
        thread_id=result.thread_id,
        citations=result.citations,
        sources=[SearchResult.from_passage(passage) for passage in result.passages],
    )
