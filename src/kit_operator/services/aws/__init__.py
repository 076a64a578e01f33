"""AWS service clients."""

from .client import AWSProvider
from .sync import DirectoryIterator, UploadUnit, upload_with_iterator

__all__ = ["AWSProvider", "DirectoryIterator", "UploadUnit", "upload_with_iterator"]
