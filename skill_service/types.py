from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath


class FileType(str, Enum):
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    DOCUMENT = "DOCUMENT"

    @property
    def representation_type(self) -> str:
        """Value for the x-rep-hints header when requesting the basic format."""
        return _REPRESENTATION_HINTS[self]


_REPRESENTATION_HINTS: dict[FileType, str] = {
    FileType.AUDIO: "[mp3]",
    FileType.VIDEO: "[mp4]",
    FileType.IMAGE: "[jpg?dimensions=1024x1024]",
    FileType.DOCUMENT: "[extracted_text]",
}

_AUDIO_FORMATS = frozenset(
    {"aac", "aif", "aifc", "aiff", "amr", "au", "flac", "m4a", "mp3", "ra", "wav", "wma"}
)
_IMAGE_FORMATS = frozenset(
    {
        "ai", "bmp", "gif", "eps", "heic", "jpeg", "jpg", "png", "ps", "psd",
        "svg", "tif", "tiff", "dcm", "dicm", "dicom", "svs", "tga",
    }
)
_VIDEO_FORMATS = frozenset(
    {
        "3g2", "3gp", "avi", "flv", "m2v", "m2ts", "m4v", "mkv", "mov", "mp4",
        "mpeg", "mpg", "ogg", "mts", "qt", "ts", "wmv",
    }
)


def derive_file_format(file_name: str) -> str:
    # PurePosixPath treats ".bashrc" as having no suffix, same as a dotless name
    return PurePosixPath(file_name).suffix.lower().lstrip(".")


def derive_file_type(file_format: str) -> FileType:
    # audio, then image, then video; anything else is a document
    if file_format in _AUDIO_FORMATS:
        return FileType.AUDIO
    if file_format in _IMAGE_FORMATS:
        return FileType.IMAGE
    if file_format in _VIDEO_FORMATS:
        return FileType.VIDEO
    return FileType.DOCUMENT


class CardType(str, Enum):
    TRANSCRIPT = "transcript"
    TOPIC = "keyword"
    FACES = "timeline"
    STATUS = "status"
    ERROR = "error"


class CardTitle(str, Enum):
    TRANSCRIPT = "Transcript"
    TOPIC = "Topics"
    FACES = "Faces"
    STATUS = "Status"
    ERROR = "Error"


class InvocationStatus(str, Enum):
    INVOKED = "invoked"
    PROCESSING = "processing"
    PENDING = "skills_pending_status"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"
    SUCCESS = "success"


class UsageUnit(str, Enum):
    FILES = "files"
    SECONDS = "seconds"
    PAGES = "pages"
    WORDS = "words"


@dataclass(frozen=True)
class FileContext:
    request_id: str | None
    skill_id: str
    file_id: str
    file_name: str
    file_size: int
    file_format: str  # lowercase extension, no dot
    file_type: FileType
    file_read_token: str
    file_write_token: str
    file_download_url: str
