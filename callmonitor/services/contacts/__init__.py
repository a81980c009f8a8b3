from .directory_cache import DirectoryCache
from .directory_client import DirectoryClient, DirectoryServiceError
from .resolver import ContactResolver

__all__ = ["ContactResolver", "DirectoryCache", "DirectoryClient", "DirectoryServiceError"]
