"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get type validation at startup and
easy testing with different configurations.

Mock modes enable local development without AWS or Snowflake.
"""

import tempfile
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.files.models import FieldConfig, FileSchema, parse_extensions


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like file_fields), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "S3 File Field API"
    api_version: str = "v1"
    public_root_url: str = Field(
        default="",
        description="Root URL prepended to gateway URLs. Empty renders site-relative URLs."
    )

    # AWS S3 Configuration
    aws_access_key_id: str = Field(
        default="",
        description="AWS access key ID"
    )
    aws_secret_access_key: str = Field(
        default="",
        description="AWS secret access key"
    )
    aws_region: str = Field(
        default="us-east-1",
        description="AWS region of the default bucket"
    )
    aws_s3_default_bucket: str = Field(
        default="",
        description="Bucket new files are uploaded to"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom S3 endpoint (e.g. MinIO). Leave empty for AWS."
    )
    s3_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real S3. Enables local dev without object storage."
    )
    s3_key_prefix: str = Field(
        default="PW",
        description="Prefix of generated object keys: {prefix}_{field}_{owner}_{basename}"
    )
    s3_max_key_attempts: int = Field(
        default=5,
        description="How many object keys to try before giving up on an upload."
    )
    signed_url_ttl_seconds: int = Field(
        default=600,
        description="Lifetime of signed download URLs. 10 minutes by default."
    )
    staging_dir: str = Field(
        default="",
        description="Directory uploads are staged in before installation. Defaults to the system temp dir."
    )

    # File fields
    file_fields: str = Field(
        default="files",
        description="Comma-separated names of the remote file fields."
    )
    file_schema_dates: bool = Field(
        default=True,
        description="Persist created/modified timestamps of each file."
    )
    file_schema_tags: bool = Field(
        default=True,
        description="Persist tags of each file."
    )
    file_extensions: str = Field(
        default="pdf doc docx xls xlsx gif jpg jpeg png txt",
        description="Space- or comma-separated extensions uploads may have. Empty allows any."
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_database: str = Field(
        default="S3FIELD",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="CONTENT",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection. Enables local dev without DB."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def file_fields_list(self) -> list[str]:
        """Parse comma-separated field names into a list."""
        return [name.strip() for name in self.file_fields.split(",") if name.strip()]

    @property
    def file_schema(self) -> FileSchema:
        schema = FileSchema.NONE
        if self.file_schema_dates:
            schema |= FileSchema.DATE
        if self.file_schema_tags:
            schema |= FileSchema.TAGS
        return schema

    @property
    def staging_root(self) -> str:
        return self.staging_dir or tempfile.gettempdir()

    def field_configs(self) -> list[FieldConfig]:
        """FieldConfig for every configured remote file field."""
        return [
            FieldConfig(
                name=name,
                schema=self.file_schema,
                key_prefix=self.s3_key_prefix,
                max_key_attempts=self.s3_max_key_attempts,
                signed_url_ttl=self.signed_url_ttl_seconds,
                extensions=parse_extensions(self.file_extensions),
            )
            for name in self.file_fields_list
        ]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        # S3 only required if not in mock mode
        if not self.s3_mock_mode:
            if not self.aws_access_key_id:
                missing.append("AWS_ACCESS_KEY_ID")
            if not self.aws_secret_access_key:
                missing.append("AWS_SECRET_ACCESS_KEY")
            if not self.aws_region:
                missing.append("AWS_REGION")
            if not self.aws_s3_default_bucket:
                missing.append("AWS_S3_DEFAULT_BUCKET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            if not self.snowflake_password and not self.snowflake_private_key_path:
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        if not self.file_fields_list:
            missing.append("FILE_FIELDS")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
