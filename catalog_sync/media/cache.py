"""Content-identity cache records stored next to transcoded output."""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import asdict, dataclass

from catalog_sync.ingest.models import AttachmentInfo

logger = logging.getLogger(__name__)

META_FILENAME = ".meta.json"


@dataclass(slots=True, frozen=True)
class VideoCacheRecord:
    file_token: str
    size: int
    source_name: str

    @classmethod
    def for_attachment(cls, attachment: AttachmentInfo) -> "VideoCacheRecord":
        return cls(file_token=attachment.file_token, size=attachment.size, source_name=attachment.name)

    def matches(self, attachment: AttachmentInfo) -> bool:
        return (self.file_token, self.size) == attachment.identity


def read_cache_record(path: pathlib.Path) -> VideoCacheRecord | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable cache record %s: %s", path, exc)
        return None
    try:
        return VideoCacheRecord(
            file_token=str(data["file_token"]),
            size=int(data["size"]),
            source_name=str(data.get("source_name", "")),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed cache record %s", path)
        return None


def write_cache_record(path: pathlib.Path, record: VideoCacheRecord) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(record), indent=2, ensure_ascii=False), encoding="utf-8")


def is_cached(path: pathlib.Path, attachment: AttachmentInfo) -> bool:
    record = read_cache_record(path)
    return record is not None and record.matches(attachment)
