"""
Bucket Explorer - browse object storage as a folder tree.

This package contains the complete application:
- core: Framework-agnostic listing pager and key-to-tree builder
- infrastructure: Object storage integration (S3 and S3-compatible)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
