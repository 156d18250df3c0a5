"""Dedicated vector database store speaking the Qdrant REST API over httpx."""

import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ...modules.common.exceptions import InvalidInput, ProviderUnavailable
from ..logging import get_logger
from .base import (
    DOCUMENT_ID_KEY,
    MetadataFilter,
    Namespace,
    VectorMatch,
    VectorRecord,
    dedupe_by_id,
    keyword_relevance,
    keyword_terms,
    validate_dimensions,
)

logger = get_logger(__name__)

# Payload keys the store adds next to the record metadata.
RECORD_ID_KEY = "_record_id"
CONTENT_KEY = "_content"

UPSERT_BATCH_SIZE = 256
SCROLL_PAGE_SIZE = 256
# Most text matches a keyword search ranks; the rest are never scored.
KEYWORD_SCAN_LIMIT = 2048


class QdrantVectorStore:
    """Vectors live in the collection ``<collection>_<namespace>`` with cosine distance.

    Qdrant point ids must be UUIDs or integers, so each record id is mapped to
    ``uuid5(NAMESPACE_URL, record_id)`` and the original id is kept in the payload.

    Upserts larger than one request are sent in batches. Before the first batch
    the current versions of the affected points are read; if a later batch
    fails, points new to this call are deleted and overwritten points get their
    previous version back before the error is raised.
    """

    def __init__(
        self,
        base_url: str,
        collection: str,
        dimension: int,
        namespace: Namespace = Namespace.CHUNKS,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.dimension = dimension
        self.namespace = namespace
        self.collection_name = f"{collection}_{namespace.value}"
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["api-key"] = api_key
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout)
        self._collection_ready = False
        self._boot_lock = asyncio.Lock()

    ##########################################
    ################ LIFECYCLE ###############
    ##########################################

    async def boot(self) -> None:
        """Create the collection if it does not exist yet. Safe to call repeatedly."""
        if self._collection_ready:
            return
        async with self._boot_lock:
            if self._collection_ready:
                return
            response = await self.do_request("GET", f"/collections/{self.collection_name}/exists")
            exists = bool(response.get("result", {}).get("exists"))
            if not exists:
                logger.info(f"Creating Qdrant collection {self.collection_name} (size={self.dimension})")
                await self.do_request(
                    "PUT",
                    f"/collections/{self.collection_name}",
                    json={"vectors": {"size": self.dimension, "distance": "Cosine"}},
                )
                await self.do_request(
                    "PUT",
                    f"/collections/{self.collection_name}/index",
                    json={"field_name": DOCUMENT_ID_KEY, "field_schema": "keyword"},
                )
                await self.do_request(
                    "PUT",
                    f"/collections/{self.collection_name}/index",
                    json={
                        "field_name": CONTENT_KEY,
                        "field_schema": {"type": "text", "tokenizer": "word", "lowercase": True},
                    },
                )
            self._collection_ready = True

    async def aclose(self) -> None:
        await self._client.aclose()

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def upsert(self, records: Sequence[VectorRecord]) -> None:
        validate_dimensions(records, self.dimension)
        unique_records = dedupe_by_id(records)
        if not unique_records:
            return
        await self.boot()

        previous: List[VectorRecord] = []
        if len(unique_records) > UPSERT_BATCH_SIZE:
            previous = await self.get([record.id for record in unique_records])

        written: List[VectorRecord] = []
        try:
            for start in range(0, len(unique_records), UPSERT_BATCH_SIZE):
                batch = unique_records[start : start + UPSERT_BATCH_SIZE]
                await self._put_points(batch)
                written.extend(batch)
        except BaseException:
            if written:
                await asyncio.shield(self._restore(written, previous))
            raise

    async def delete_by_document(self, document_id: str) -> int:
        await self.boot()
        matched = await self.count({DOCUMENT_ID_KEY: str(document_id)})
        await self.do_request(
            "POST",
            f"/collections/{self.collection_name}/points/delete",
            params={"wait": "true"},
            json={"filter": self.get_filter_payload({DOCUMENT_ID_KEY: str(document_id)})},
        )
        return matched

    async def _put_points(self, records: Sequence[VectorRecord]) -> None:
        await self.do_request(
            "PUT",
            f"/collections/{self.collection_name}/points",
            params={"wait": "true"},
            json={"points": [self._to_point(record) for record in records]},
        )

    async def _restore(self, written: List[VectorRecord], previous: List[VectorRecord]) -> None:
        """Undo the batches of a failed upsert. The upsert's own error is what propagates.

        Points that did not exist before the upsert are deleted; points it
        overwrote are written back with their previous vector and payload.
        """
        written_ids = {record.id for record in written}
        restored = [record for record in previous if record.id in written_ids]
        restored_ids = {record.id for record in restored}
        fresh = [self.point_id(record.id) for record in written if record.id not in restored_ids]
        try:
            if fresh:
                await self.do_request(
                    "POST",
                    f"/collections/{self.collection_name}/points/delete",
                    params={"wait": "true"},
                    json={"points": fresh},
                )
            for start in range(0, len(restored), UPSERT_BATCH_SIZE):
                await self._put_points(restored[start : start + UPSERT_BATCH_SIZE])
        except ProviderUnavailable as e:
            logger.error(
                f"Could not roll back a failed upsert ({len(fresh)} points to remove, "
                f"{len(restored)} to restore): {e}"
            )

    ##########################################
    ################ READS ###################
    ##########################################

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]:
        validate_dimensions([VectorRecord(id="<query>", vector=list(vector))], self.dimension)
        if k <= 0:
            return []
        await self.boot()

        payload: Dict[str, Any] = {"vector": [float(value) for value in vector], "limit": k, "with_payload": True}
        if metadata_filter or exclude_filter:
            payload["filter"] = self.get_filter_payload(metadata_filter or {}, exclude_filter)

        response = await self.do_request("POST", f"/collections/{self.collection_name}/points/search", json=payload)
        matches = []
        for point in response.get("result", []):
            point_payload = dict(point.get("payload") or {})
            record_id = str(point_payload.pop(RECORD_ID_KEY, point.get("id")))
            content = str(point_payload.pop(CONTENT_KEY, ""))
            matches.append(
                VectorMatch(id=record_id, score=float(point["score"]), metadata=point_payload, content=content)
            )
        return matches

    async def keyword_search(
        self,
        text: str,
        k: int,
        metadata_filter: Optional[MetadataFilter] = None,
        exclude_filter: Optional[MetadataFilter] = None,
    ) -> List[VectorMatch]:
        """Full-text match on the record content.

        Qdrant narrows the points through the text index on ``_content`` but does
        not rank them, so up to ``KEYWORD_SCAN_LIMIT`` matches are scored here
        with the same relevance the in-memory store uses.
        """
        terms = keyword_terms(text)
        if k <= 0 or not terms:
            return []
        await self.boot()

        scroll_filter = self.get_filter_payload(metadata_filter or {}, exclude_filter)
        scroll_filter["must"].extend({"key": CONTENT_KEY, "match": {"text": term}} for term in terms)

        scored = []
        scanned = 0
        offset: Any = None
        while scanned < KEYWORD_SCAN_LIMIT:
            payload: Dict[str, Any] = {
                "filter": scroll_filter,
                "limit": min(SCROLL_PAGE_SIZE, KEYWORD_SCAN_LIMIT - scanned),
                "with_payload": True,
            }
            if offset is not None:
                payload["offset"] = offset
            response = await self.do_request("POST", f"/collections/{self.collection_name}/points/scroll", json=payload)
            result = response.get("result", {})
            points = result.get("points", [])
            scanned += len(points)
            for record in map(self._from_point, points):
                relevance = keyword_relevance(terms, record.content)
                if relevance > 0:
                    scored.append((relevance, record))
            offset = result.get("next_page_offset")
            if offset is None or not points:
                break

        scored.sort(key=lambda item: (-item[0], item[1].id))
        return [
            VectorMatch(id=record.id, score=relevance, metadata=record.metadata, content=record.content)
            for relevance, record in scored[:k]
        ]

    async def get(self, ids: Sequence[str]) -> List[VectorRecord]:
        if not ids:
            return []
        await self.boot()
        response = await self.do_request(
            "POST",
            f"/collections/{self.collection_name}/points",
            json={"ids": [self.point_id(record_id) for record_id in ids], "with_payload": True, "with_vector": True},
        )
        by_id = {record.id: record for record in map(self._from_point, response.get("result", []))}
        return [by_id[record_id] for record_id in ids if record_id in by_id]

    async def list_by_document(self, document_id: str) -> List[VectorRecord]:
        await self.boot()
        records: List[VectorRecord] = []
        offset: Any = None
        while True:
            payload: Dict[str, Any] = {
                "filter": self.get_filter_payload({DOCUMENT_ID_KEY: str(document_id)}),
                "limit": SCROLL_PAGE_SIZE,
                "with_payload": True,
                "with_vector": True,
            }
            if offset is not None:
                payload["offset"] = offset
            response = await self.do_request("POST", f"/collections/{self.collection_name}/points/scroll", json=payload)
            result = response.get("result", {})
            records.extend(self._from_point(point) for point in result.get("points", []))
            offset = result.get("next_page_offset")
            if offset is None:
                break
        return sorted(records, key=lambda record: record.metadata.get("position", 0))

    async def count(self, metadata_filter: Optional[MetadataFilter] = None) -> int:
        await self.boot()
        payload: Dict[str, Any] = {"exact": True}
        if metadata_filter:
            payload["filter"] = self.get_filter_payload(metadata_filter)
        response = await self.do_request("POST", f"/collections/{self.collection_name}/points/count", json=payload)
        return int(response.get("result", {}).get("count", 0))

    ##########################################
    ########### PAYLOAD BUILDER ##############
    ##########################################

    @staticmethod
    def point_id(record_id: str) -> str:
        return str(uuid.uuid5(uuid.NAMESPACE_URL, record_id))

    @staticmethod
    def get_filter_payload(
        metadata_filter: MetadataFilter, exclude_filter: Optional[MetadataFilter] = None
    ) -> Dict[str, Any]:
        """Build a Qdrant filter: scalars match by value, collections by ``any``.

        ``metadata_filter`` becomes ``must`` conditions. Each ``exclude_filter``
        entry becomes a ``must_not`` condition, so a point matching any of them
        is dropped; an excluded ``None`` drops points whose key is missing or null.
        """
        payload: Dict[str, Any] = {"must": [_match(key, expected) for key, expected in metadata_filter.items()]}
        if exclude_filter:
            payload["must_not"] = [
                {"is_empty": {"key": key}} if excluded is None else _match(key, excluded)
                for key, excluded in exclude_filter.items()
            ]
        return payload

    def _to_point(self, record: VectorRecord) -> Dict[str, Any]:
        payload = dict(record.metadata)
        payload[RECORD_ID_KEY] = record.id
        payload[CONTENT_KEY] = record.content
        return {"id": self.point_id(record.id), "vector": [float(value) for value in record.vector], "payload": payload}

    @staticmethod
    def _from_point(point: Dict[str, Any]) -> VectorRecord:
        payload = dict(point.get("payload") or {})
        record_id = str(payload.pop(RECORD_ID_KEY, point.get("id")))
        content = str(payload.pop(CONTENT_KEY, ""))
        vector = point.get("vector") or []
        return VectorRecord(id=record_id, vector=[float(value) for value in vector], metadata=payload, content=content)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded body.

        Raises:
            ProviderUnavailable: On transport errors, timeouts and 5xx responses
            InvalidInput: On other 4xx responses
        """
        try:
            response = await self._client.request(method, endpoint, json=json, params=params)
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"Qdrant unreachable ({method} {endpoint}): {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise ProviderUnavailable(f"Qdrant returned {response.status_code} for {method} {endpoint}")
        if response.status_code >= 400:
            raise InvalidInput(f"Qdrant rejected {method} {endpoint} ({response.status_code}): {response.text[:200]}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderUnavailable(f"Qdrant returned a non-JSON body for {method} {endpoint}") from e


def _match(key: str, expected: Any) -> Dict[str, Any]:
    if isinstance(expected, (list, tuple, set, frozenset)):
        return {"key": key, "match": {"any": list(expected)}}
    return {"key": key, "match": {"value": expected}}
