"""
Value types shared by the remote file components.

These are plain values: where an object lives in the store, how a field
is configured, and how timestamps are written to persisted records.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntFlag
from typing import Iterable, Optional, Union

from .errors import InvalidRecordError

# Format used for every timestamp written to a persisted record
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_EXTENSIONS = ("pdf", "doc", "docx", "xls", "xlsx", "gif", "jpg", "jpeg", "png", "txt")


def parse_extensions(value: Union[str, Iterable[str]]) -> tuple[str, ...]:
    """Normalize "pdf .JPG, txt" or an iterable of extensions."""
    if isinstance(value, str):
        value = value.replace(",", " ").split()
    return tuple(dict.fromkeys(ext.strip().lstrip(".").lower() for ext in value if ext.strip(" .")))


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a persisted timestamp.

    Accepts datetimes (as returned by the database driver), formatted
    strings, or empty values. Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.strptime(str(value), TIMESTAMP_FORMAT)
        except ValueError:
            parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


class FileSchema(IntFlag):
    """Optional columns a field persists beyond the basic metadata."""
    NONE = 0
    DATE = 1
    TAGS = 2


@dataclass(frozen=True)
class RemoteLocation:
    """
    Where an object lives: region, bucket and key.

    Frozen because a location is set once, at installation, and never
    changes afterwards. The text form is ``region:bucket:key``.
    """
    region: str
    bucket: str
    key: str

    def __post_init__(self) -> None:
        if not self.region or not self.bucket or not self.key:
            raise InvalidRecordError(
                f"Incomplete location: {self.region!r}:{self.bucket!r}:{self.key!r}"
            )

    def __str__(self) -> str:
        return f"{self.region}:{self.bucket}:{self.key}"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["RemoteLocation"]:
        """Parse ``region:bucket:key``; keys may contain further colons."""
        if not value:
            return None
        parts = str(value).split(":", 2)
        if len(parts) != 3:
            raise InvalidRecordError(f"Malformed location: {value!r}")
        return cls(region=parts[0], bucket=parts[1], key=parts[2])


@dataclass
class FieldConfig:
    """Per-field settings for a remote file field."""
    name: str
    schema: FileSchema = FileSchema.DATE | FileSchema.TAGS
    key_prefix: str = "PW"
    max_key_attempts: int = 5
    signed_url_ttl: int = 600  # seconds
    # Allowed extensions, lowercase without dot. Empty allows any.
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS

    def __post_init__(self) -> None:
        self.extensions = parse_extensions(self.extensions)
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.max_key_attempts < 1:
            raise ValueError("max_key_attempts must be at least 1")
        if self.signed_url_ttl <= 0:
            raise ValueError("signed_url_ttl must be positive")

    def allows_extension(self, ext: str) -> bool:
        return not self.extensions or ext.lower() in self.extensions
