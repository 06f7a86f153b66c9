import abc
from typing import Optional


class StorageError(Exception):
    """Base error for object storage access."""
    pass


class ObjectUnavailableError(StorageError):
    """
    The object does not exist or cannot be read with the configured
    credentials. Downloading it again gives the same answer.
    """
    pass


class StoragePort(abc.ABC):
    """Read access to the object storage holding uploaded files."""

    @abc.abstractmethod
    async def download(self, object_name: str, bucket_name: Optional[str] = None) -> bytes:
        """
        Returns the raw bytes of object_name. bucket_name overrides the default bucket.
        Raises ObjectUnavailableError for missing or forbidden objects; any
        other failure is raised as a StorageError subclass or the client's own error.
        """
        raise NotImplementedError
