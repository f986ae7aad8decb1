"""Content-addressed storage for record payloads."""

from pinning.client import PINATA_URL, ContentStoreClient

__all__ = ["PINATA_URL", "ContentStoreClient"]
