"""
Core logic for S3-backed file fields.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or Snowflake. Object storage and owner persistence are reached through
protocols, so the file field can be tested with in-memory stand-ins.
"""
