"""
Connectors to external systems. The document store is the only one today;
services call it through asyncio.to_thread since it does blocking file I/O.
"""
from .document_storage import DocumentStorageConnector

__all__ = ["DocumentStorageConnector"]
