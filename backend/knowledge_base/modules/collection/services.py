"""Collection management and retrieval scope resolution."""

import uuid as uuid_pkg
from typing import Any, List, Optional, cast

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..common.exceptions import CollectionNotFoundError, DocumentNotFoundError, ResourceExistsError
from ..document.crud import document_crud
from ..document.models import Document
from .crud import collection_crud, collection_document_crud
from .models import Collection, CollectionDocument
from .schemas import CollectionCreate, CollectionRead


class CollectionService:
    """Service for collections, a user's named groupings of documents.

    A document belongs to a collection either through an explicit membership
    row or because the collection is its primary ``collection_id``.
    """

    async def create_collection(self, collection_data: CollectionCreate, db: AsyncSession) -> CollectionRead:
        """Create a collection.

        Args:
            collection_data: Owner, name and description
            db: Database session

        Returns:
            Created collection

        Raises:
            ResourceExistsError: If the user already has a collection with this name
        """
        if await collection_crud.exists(db=db, user_id=collection_data.user_id, name=collection_data.name):
            raise ResourceExistsError(f"Collection '{collection_data.name}' already exists")

        created = cast(Any, await collection_crud.create(db=db, object=collection_data))
        return CollectionRead(
            id=created.id,
            user_id=created.user_id,
            name=created.name,
            description=created.description,
            created_at=created.created_at,
            updated_at=created.updated_at,
            document_ids=[],
        )

    async def get_collection(self, collection_id: uuid_pkg.UUID, db: AsyncSession) -> CollectionRead:
        """Get a collection with its member document ids.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        collection = await db.get(Collection, collection_id)
        if collection is None:
            raise CollectionNotFoundError(collection_id)

        return CollectionRead(
            id=collection.id,
            user_id=collection.user_id,
            name=collection.name,
            description=collection.description,
            created_at=collection.created_at,
            updated_at=collection.updated_at,
            document_ids=await self.get_document_ids(collection_id, db),
        )

    async def list_collections(self, user_id: str, db: AsyncSession) -> List[CollectionRead]:
        result = await db.execute(
            select(Collection).where(Collection.user_id == user_id).order_by(Collection.created_at.desc())
        )
        return [
            CollectionRead(
                id=collection.id,
                user_id=collection.user_id,
                name=collection.name,
                description=collection.description,
                created_at=collection.created_at,
                updated_at=collection.updated_at,
            )
            for collection in result.scalars().all()
        ]

    async def delete_collection(self, collection_id: uuid_pkg.UUID, db: AsyncSession) -> None:
        """Delete a collection. Member documents are kept.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        if not await collection_crud.exists(db=db, id=collection_id):
            raise CollectionNotFoundError(collection_id)

        await db.execute(delete(CollectionDocument).where(CollectionDocument.collection_id == collection_id))
        await collection_crud.db_delete(db=db, id=collection_id)

    async def add_document(
        self, collection_id: uuid_pkg.UUID, document_id: uuid_pkg.UUID, db: AsyncSession
    ) -> CollectionRead:
        """Add a document to a collection. Adding an existing member is a no-op."""
        await self._ensure_exists(collection_id, document_id, db)

        is_member = await collection_document_crud.exists(db=db, collection_id=collection_id, document_id=document_id)
        if not is_member:
            db.add(CollectionDocument(collection_id=collection_id, document_id=document_id))
            await db.commit()

        return await self.get_collection(collection_id, db)

    async def remove_document(
        self, collection_id: uuid_pkg.UUID, document_id: uuid_pkg.UUID, db: AsyncSession
    ) -> CollectionRead:
        """Remove a document from a collection. The document itself is kept."""
        await self._ensure_exists(collection_id, document_id, db)

        await db.execute(
            delete(CollectionDocument).where(
                CollectionDocument.collection_id == collection_id,
                CollectionDocument.document_id == document_id,
            )
        )
        document = await db.get(Document, document_id)
        if document is not None and document.collection_id == collection_id:
            document.collection_id = None
        await db.commit()

        return await self.get_collection(collection_id, db)

    async def get_document_ids(self, collection_id: uuid_pkg.UUID, db: AsyncSession) -> List[uuid_pkg.UUID]:
        """Ids of every document in the collection, explicit members first."""
        members = await db.execute(
            select(CollectionDocument.document_id).where(CollectionDocument.collection_id == collection_id)
        )
        primary = await db.execute(select(Document.id).where(Document.collection_id == collection_id))

        document_ids: List[uuid_pkg.UUID] = []
        for document_id in [*members.scalars().all(), *primary.scalars().all()]:
            if document_id not in document_ids:
                document_ids.append(document_id)
        return document_ids

    async def _ensure_exists(self, collection_id: uuid_pkg.UUID, document_id: uuid_pkg.UUID, db: AsyncSession) -> None:
        if not await collection_crud.exists(db=db, id=collection_id):
            raise CollectionNotFoundError(collection_id)
        if not await document_crud.exists(db=db, id=document_id):
            raise DocumentNotFoundError(document_id)


class SqlCollectionMembership:
    """Resolves a collection to its document ids in a session of its own.

    Used by the retriever, which runs outside the request's session.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: Optional[CollectionService] = None,
    ):
        self.session_factory = session_factory
        self.service = service or CollectionService()

    async def document_ids(self, collection_id: str) -> List[str]:
        try:
            collection_uuid = uuid_pkg.UUID(str(collection_id))
        except ValueError:
            raise CollectionNotFoundError(collection_id) from None

        async with self.session_factory() as session:
            if await session.get(Collection, collection_uuid) is None:
                raise CollectionNotFoundError(collection_id)
            document_ids = await self.service.get_document_ids(collection_uuid, session)
        return [str(document_id) for document_id in document_ids]
