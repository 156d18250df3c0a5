"""FastCRUD repositories for collections and memberships."""

from fastcrud import FastCRUD

from .models import Collection, CollectionDocument

collection_crud: FastCRUD = FastCRUD(Collection)
collection_document_crud: FastCRUD = FastCRUD(CollectionDocument)
