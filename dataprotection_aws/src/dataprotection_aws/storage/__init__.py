"""Object store persistence for key documents."""
from .s3_repository import S3XmlRepository
from .throttle import ConcurrencyThrottle

__all__ = ["ConcurrencyThrottle", "S3XmlRepository"]
