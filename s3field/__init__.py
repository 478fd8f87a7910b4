"""
s3field - a CMS file field whose content lives in S3.

This package contains the complete application:
- core: Framework-agnostic file field logic (remote files, codec, gateway)
- infrastructure: External service integrations (S3, Snowflake)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
