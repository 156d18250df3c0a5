"""Citation markers appended to generated answers."""

from typing import List, Protocol, Sequence


class CitedPassage(Protocol):
    @property
    def document_id(self) -> str: ...


def citation_marker(document_id: str) -> str:
    return f"[doc-{document_id}]"


def cited_document_ids(passages: Sequence[CitedPassage]) -> List[str]:
    """Distinct document ids in the order the passages rank them."""
    document_ids: List[str] = []
    for passage in passages:
        if passage.document_id and passage.document_id not in document_ids:
            document_ids.append(passage.document_id)
    return document_ids


def compose(answer_text: str, passages: Sequence[CitedPassage]) -> str:
    """Append one ``[doc-<id>]`` marker per cited document to the answer.

    Passages from documents a, b and a again turn "Cats sleep a lot." into
    "Cats sleep a lot. [doc-a][doc-b]".

    With no passages the answer is returned unchanged.
    """
    markers = "".join(citation_marker(document_id) for document_id in cited_document_ids(passages))
    if not markers:
        return answer_text
    return f"{answer_text} {markers}"
