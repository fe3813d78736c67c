"""
Manifest schema.

GameUploadData is persisted as JSON next to the game and uploaded with the
saves, so its field names are a compatibility surface shared by every
installation. The mapping between attributes and JSON names is declared
statically below; unknown JSON fields are ignored and missing ones take
their defaults.

Timestamps are stored as UTC ISO-8601 strings with a trailing "Z"; the play
time is stored as a duration string of the form ``[-][d.]hh:mm:ss[.fffffff]``.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, Dict, Optional

from ..paths import expand_path, normalize_path

logger = logging.getLogger(__name__)

_FRACTION_PATTERN = re.compile(r'^(.*T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(.*)$')
_DURATION_PATTERN = re.compile(
    r'^(?P<sign>-)?(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{2}):(?P<seconds>\d{2})(?:\.(?P<fraction>\d{1,7}))?$'
)

EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)


class CloudProvider(IntEnum):
    """Cloud provider assigned to a game; GLOBAL follows the app-wide setting."""
    GOOGLE_DRIVE = 0
    ONE_DRIVE = 1
    DROPBOX = 2
    PCLOUD = 3
    BOX = 4
    AMAZON_DRIVE = 5
    YANDEX = 6
    PUT_IO = 7
    HIDRIVE = 8
    UPTOBOX = 9
    GLOBAL = 999

    @classmethod
    def parse(cls, value: Any) -> "CloudProvider":
        if isinstance(value, str):
            key = value.replace(" ", "_").upper()
            if key.lstrip("-").isdigit():
                value = int(key)
            elif key in cls.__members__:
                return cls[key]
            else:
                return cls.GLOBAL
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.GLOBAL


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _require(value: Any, kind: type, name: str) -> Any:
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ValueError(f"{name} must be a JSON {'object' if kind is dict else kind.__name__}, got {value!r}")
    return value


def _optional_text(value: Any, name: str) -> Optional[str]:
    if value is None:
        return None
    return _require(value, str, name)


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # strftime("%Y") does not zero-pad years below 1000 on every platform
    v = to_utc(value)
    return (
        f"{v.year:04d}-{v.month:02d}-{v.day:02d}T"
        f"{v.hour:02d}:{v.minute:02d}:{v.second:02d}.{v.microsecond:06d}Z"
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Accepts up to seven fractional digits and a "Z" suffix. Fractions beyond
    microseconds are truncated.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    text = value.strip()
    match = _FRACTION_PATTERN.match(text)
    if match:
        base, fraction, suffix = match.groups()
        text = base
        if fraction:
            text += "." + fraction[:6].ljust(6, "0")
        text += suffix
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def format_duration(value: timedelta) -> str:
    """Format a duration as ``[-][d.]hh:mm:ss[.fffffff]``."""
    total_us = (value.days * 86400 + value.seconds) * 1_000_000 + value.microseconds
    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    seconds, micros = divmod(total_us, 1_000_000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    text = f"{sign}{days}." if days else sign
    text += f"{hours:02d}:{minutes:02d}:{seconds:02d}"
    if micros:
        text += f".{micros * 10:07d}"
    return text


def parse_duration(value: Any) -> timedelta:
    """Parse a stored duration; numbers are taken as seconds."""
    if value is None or value == "":
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)

    match = _DURATION_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"Unsupported duration value: {value!r}")

    fraction = (match.group("fraction") or "0").ljust(7, "0")
    duration = timedelta(
        days=int(match.group("days") or 0),
        hours=int(match.group("hours")),
        minutes=int(match.group("minutes")),
        seconds=int(match.group("seconds")),
        microseconds=int(fraction) // 10,
    )
    return -duration if match.group("sign") else duration


@dataclass
class FileChecksumRecord:
    """
    Last known state of one tracked file.

    ``checksum`` and ``file_size`` always describe the same content snapshot.
    """

    checksum: str = ""
    last_upload: datetime = EPOCH
    path: str = ""
    file_size: int = 0
    last_write_time: Optional[datetime] = None

    def get_absolute_path(
        self,
        game_directory: Optional[str] = None,
        detected_prefix: Optional[str] = None,
    ) -> str:
        """Expand the stored portable path for this machine."""
        if not self.path:
            return self.path
        return expand_path(self.path, game_directory, detected_prefix)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Checksum": self.checksum,
            "LastUpload": format_timestamp(self.last_upload),
            "Path": self.path,
            "FileSize": self.file_size,
            "LastWriteTime": format_timestamp(self.last_write_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileChecksumRecord":
        """
        Raises:
            ValueError: If ``data`` is not an object or a field has the
                wrong type
        """
        _require(data, dict, "File record")
        file_size = data.get("FileSize") or 0
        if isinstance(file_size, float) and file_size.is_integer():
            file_size = int(file_size)
        return cls(
            checksum=_optional_text(data.get("Checksum"), "Checksum") or "",
            last_upload=parse_timestamp(data.get("LastUpload")) or EPOCH,
            path=normalize_path(_optional_text(data.get("Path"), "Path") or ""),
            file_size=_require(file_size, int, "FileSize"),
            last_write_time=parse_timestamp(data.get("LastWriteTime")),
        )

    def __str__(self) -> str:
        return self.get_absolute_path()


def _find_key(mapping: Dict[str, Any], key: str) -> Optional[str]:
    if key in mapping:
        return key
    lowered = normalize_path(key).lower()
    for existing in mapping:
        if existing.lower() == lowered:
            return existing
    return None


@dataclass
class GameUploadData:
    """
    The per-game (and per-profile) manifest.

    Keys of ``files`` and ``blacklist`` are portable paths. Lookups through
    get_record() and writes through set_record() treat keys that differ
    only in case as the same file.
    """

    files: Dict[str, FileChecksumRecord] = field(default_factory=dict)
    last_updated: datetime = field(default_factory=utc_now)
    can_track: bool = True
    can_uploads: bool = True
    game_provider: CloudProvider = CloudProvider.GLOBAL
    blacklist: Dict[str, FileChecksumRecord] = field(default_factory=dict)
    last_sync_status: str = "Unknown"
    allow_game_watcher: bool = True
    enable_smart_sync: bool = True
    play_time: timedelta = field(default_factory=timedelta)
    detected_prefix: Optional[str] = None

    def get_record(self, portable_path: str) -> Optional[FileChecksumRecord]:
        key = _find_key(self.files, portable_path)
        return self.files[key] if key is not None else None

    def set_record(self, portable_path: str, record: FileChecksumRecord) -> None:
        key = _find_key(self.files, portable_path)
        if key is not None and key != portable_path:
            del self.files[key]
        self.files[portable_path] = record

    def remove_record(self, portable_path: str) -> bool:
        key = _find_key(self.files, portable_path)
        if key is None:
            return False
        del self.files[key]
        return True

    def is_blacklisted(self, portable_path: str) -> bool:
        return _find_key(self.blacklist, portable_path) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Files": {key: record.to_dict() for key, record in self.files.items()},
            "LastUpdated": format_timestamp(self.last_updated),
            "CanTrack": self.can_track,
            "CanUploads": self.can_uploads,
            "GameProvider": int(self.game_provider),
            "Blacklist": {key: record.to_dict() for key, record in self.blacklist.items()},
            "LastSyncStatus": self.last_sync_status,
            "AllowGameWatcher": self.allow_game_watcher,
            "EnableSmartSync": self.enable_smart_sync,
            "PlayTime": format_duration(self.play_time),
            "DetectedPrefix": self.detected_prefix,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameUploadData":
        """
        Build a manifest from parsed JSON.

        Raises:
            ValueError: If the document is not a JSON object or a field has
                an unusable value
        """
        if not isinstance(data, dict):
            raise ValueError("Manifest document must be a JSON object")

        def records(section: Any, name: str) -> Dict[str, FileChecksumRecord]:
            result: Dict[str, FileChecksumRecord] = {}
            if section is None:
                return result
            for key, value in _require(section, dict, name).items():
                record = FileChecksumRecord.from_dict({} if value is None else value)
                if not record.path:
                    record.path = normalize_path(key)
                result[key] = record
            return result

        return cls(
            files=records(data.get("Files"), "Files"),
            last_updated=parse_timestamp(data.get("LastUpdated")) or utc_now(),
            can_track=bool(data.get("CanTrack", True)),
            can_uploads=bool(data.get("CanUploads", True)),
            game_provider=CloudProvider.parse(data.get("GameProvider", CloudProvider.GLOBAL)),
            blacklist=records(data.get("Blacklist"), "Blacklist"),
            last_sync_status=_optional_text(data.get("LastSyncStatus"), "LastSyncStatus") or "Unknown",
            allow_game_watcher=bool(data.get("AllowGameWatcher", True)),
            enable_smart_sync=bool(data.get("EnableSmartSync", True)),
            play_time=parse_duration(data.get("PlayTime")),
            detected_prefix=_optional_text(data.get("DetectedPrefix"), "DetectedPrefix") or None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "GameUploadData":
        return cls.from_dict(json.loads(text))
