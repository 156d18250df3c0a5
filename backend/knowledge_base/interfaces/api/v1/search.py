"""Search endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ....modules.retrieval import RetrievalOptions, Retriever
from ....modules.retrieval.schemas import SearchRequest, SearchResponse, SearchResult
from ..dependencies import get_retriever

router = APIRouter(prefix="/search", tags=["Search"])


@router.post(
    "",
    summary="Search Documents",
    description="""
    Finds the chunks most relevant to the query, best first.

    - **k**: Maximum number of results (defaults to `MAX_RESULTS`)
    - **min_similarity**: Results below this similarity are dropped
    - **collection_id** / **document_id** / **user_id**: Limit the search scope
    - **use_graph**: Also consider chunks linked to the top matches; these rank
      below direct matches of equal similarity
    - **search_mode**: `vector` (default), `keyword`, or `hybrid`; keyword and hybrid
      results are ranked by reciprocal rank fusion
    - **include_metadata** / **exclude_metadata**: Keep only, or drop, chunks with
      these metadata values
    - **relation_types** / **direction**: Which relationships graph expansion follows
    """,
    responses={
        200: {"description": "Ranked results, possibly empty"},
        404: {"description": "Collection not found"},
        422: {"description": "Missing or blank query, or a metadata filter on a scope key"},
        503: {"description": "Embedding provider or vector store unavailable"},
    },
)
async def search(
    request: SearchRequest,
    retriever: Annotated[Retriever, Depends(get_retriever)],
) -> SearchResponse:
    options = RetrievalOptions(
        collection_id=str(request.collection_id) if request.collection_id else None,
        document_id=str(request.document_id) if request.document_id else None,
        user_id=request.user_id,
        k=request.k,
        min_similarity=request.min_similarity,
        use_graph=request.use_graph,
        search_mode=request.search_mode,
        include_metadata=request.include_metadata,
        exclude_metadata=request.exclude_metadata,
        relation_types=tuple(request.relation_types) if request.relation_types is not None else None,
        direction=request.direction,
    )
    passages = await retriever.retrieve(request.query, options)
    return SearchResponse(query=request.query, results=[SearchResult.from_passage(p) for p in passages])
