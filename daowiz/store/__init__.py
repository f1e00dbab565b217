"""
Content-addressed stores for module payloads and metadata descriptors.
"""
from .base import ContentStore, content_address
from .ipfs import IpfsContentStore
from .local import LocalContentStore

__all__ = ["ContentStore", "IpfsContentStore", "LocalContentStore", "content_address"]
