"""
Backend package for the cloud memory service.

This package provides a FastAPI application that accepts photo "memories",
stores the images in S3-compatible object storage, keeps metadata in a SQL
database, and serves paginated reads plus a cloud-cleanup summary.
"""
