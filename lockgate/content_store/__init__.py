"""Client for the content-addressed storage node."""

from lockgate.content_store.client import ContentStoreClient, ContentStoreError
from lockgate.content_store.models import ContentIdentifier

__all__ = ["ContentIdentifier", "ContentStoreClient", "ContentStoreError"]
