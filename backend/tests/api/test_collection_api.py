"""API tests for Collection endpoints."""

import uuid

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.integration


class TestCollectionAPI:
    """API tests for collection endpoints."""

    @pytest.mark.asyncio
    async def test_create_collection(self, client: AsyncClient):
        """Test creating a collection."""
        response = await client.post(
            "/api/v1/collections", json={"user_id": "alice", "name": "Research", "description": "Papers"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Research"
        assert data["document_ids"] == []

    @pytest.mark.asyncio
    async def test_create_duplicate_collection(self, client: AsyncClient):
        """Test one user cannot reuse a collection name."""
        payload = {"user_id": "alice", "name": "Research"}
        await client.post("/api/v1/collections", json=payload)

        response = await client.post("/api/v1/collections", json=payload)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_list_collections(self, client: AsyncClient):
        """Test listing is per user."""
        await client.post("/api/v1/collections", json={"user_id": "alice", "name": "A"})
        await client.post("/api/v1/collections", json={"user_id": "bob", "name": "B"})

        response = await client.get("/api/v1/collections", params={"user_id": "alice"})

        assert [c["name"] for c in response.json()] == ["A"]

    @pytest.mark.asyncio
    async def test_membership(self, client: AsyncClient):
        """Test adding and removing a document."""
        collection = (await client.post("/api/v1/collections", json={"user_id": "alice", "name": "Pets"})).json()
        document = (
            await client.post("/api/v1/documents", json={"filename": "a.txt", "user_id": "alice", "content": "cat"})
        ).json()
        path = f"/api/v1/collections/{collection['id']}/documents/{document['id']}"

        added = await client.put(path)
        assert added.status_code == 200
        assert added.json()["document_ids"] == [document["id"]]

        removed = await client.delete(path)
        assert removed.status_code == 200
        assert removed.json()["document_ids"] == []

    @pytest.mark.asyncio
    async def test_membership_unknown_document(self, client: AsyncClient):
        """Test adding a document that does not exist."""
        collection = (await client.post("/api/v1/collections", json={"user_id": "alice", "name": "Pets"})).json()

        response = await client.put(f"/api/v1/collections/{collection['id']}/documents/{uuid.uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_collection(self, client: AsyncClient):
        """Test deleting a collection."""
        collection = (await client.post("/api/v1/collections", json={"user_id": "alice", "name": "Pets"})).json()

        assert (await client.delete(f"/api/v1/collections/{collection['id']}")).status_code == 204
        assert (await client.get(f"/api/v1/collections/{collection['id']}")).status_code == 404
