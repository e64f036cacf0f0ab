"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Sharded filesystem storage backend for blobs
- Redis cache for metadata projections
- Name validation and MIME type detection

Keep infrastructure concerns separate from business logic.
"""
