"""Storage layer for an over-the-air app update service.

This package provides:
- Async document and blob store adapters over MongoDB and S3-compatible storage
- Bounded package history per deployment
- Access-key resolution for bearer-token authentication
"""

from otastore.core.storage import Storage

__all__ = ["Storage"]
