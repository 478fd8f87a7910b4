#!/usr/bin/env python3
"""
Install a local file into a remote file field.

Registers the owner record if needed, uploads the file to S3 and saves
the field value. The local file is left in place.

Usage:
    python scripts/install_file.py OWNER_ID FIELD PATH [--description TEXT] [--tags TEXT]

Requires:
    - .env file with AWS and Snowflake credentials (or *_MOCK_MODE=true)
"""

import argparse
import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from s3field.config.settings import get_settings  # noqa: E402
from s3field.core.files import (  # noqa: E402
    GATEWAY_PATH,
    FreshRemoteFile,
    GatewayUrlBuilder,
    RemoteFileError,
    RemoteFileField,
)
from s3field.infrastructure.snowflake.client import create_snowflake_connection  # noqa: E402
from s3field.infrastructure.snowflake.repositories.owners import (  # noqa: E402
    OwnerRepository,
    SnowflakeConfig,
)
from s3field.infrastructure.storage import StorageConfig, create_storage_client  # noqa: E402


def install_file(owner_id: str, field_name: str, path: Path, description: str, tags: str) -> bool:
    settings = get_settings()

    missing = settings.validate_required_fields()
    if missing:
        print(f"ERROR: Missing configuration: {', '.join(missing)}")
        return False

    configs = {config.name: config for config in settings.field_configs()}
    if field_name not in configs:
        print(f"ERROR: Unknown field {field_name!r} (configured: {', '.join(configs)})")
        return False

    if settings.s3_mock_mode:
        store = create_storage_client(mock_mode=True)
    else:
        store = create_storage_client(config=StorageConfig(
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            region=settings.aws_region,
            bucket_name=settings.aws_s3_default_bucket,
            endpoint_url=settings.s3_endpoint_url,
            default_ttl_seconds=settings.signed_url_ttl_seconds,
        ))

    snowflake_config = None
    if not settings.snowflake_mock_mode:
        snowflake_config = SnowflakeConfig(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password or None,
            private_key_path=settings.snowflake_private_key_path,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            warehouse=settings.snowflake_warehouse,
            role=settings.snowflake_role,
        )

    with create_snowflake_connection(
        config=snowflake_config,
        mock_mode=settings.snowflake_mock_mode,
    ) as conn:
        repository = OwnerRepository(conn)
        repository.create_tables()
        repository.create_owner(owner_id)

        field = RemoteFileField(
            configs[field_name],
            store,
            repository,
            staging_root=settings.staging_root,
            url_builder=GatewayUrlBuilder(settings.public_root_url, GATEWAY_PATH),
        )

        try:
            collection = field.load(owner_id)
            file = FreshRemoteFile(collection, description=description, tags=tags)
            file.install(path.resolve(), transient=False)
            collection.add(file)
            collection.save()
        except RemoteFileError as e:
            print(f"ERROR: {e}")
            return False

    print(f"Installed {file.basename} ({file.size} bytes) at {file.location}")
    print(f"URL: {file.url()}")
    return True


def main():
    parser = argparse.ArgumentParser(description="Install a local file into a remote file field")
    parser.add_argument("owner_id", help="Owner record ID")
    parser.add_argument("field", help="Remote file field name")
    parser.add_argument("path", type=Path, help="Local file to upload")
    parser.add_argument("--description", default="", help="File description")
    parser.add_argument("--tags", default="", help="Space-separated tags")
    args = parser.parse_args()

    if not args.path.is_file():
        print(f"ERROR: {args.path} not found")
        sys.exit(1)

    success = install_file(args.owner_id, args.field, args.path, args.description, args.tags)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
