"""Extension to category lookup."""

from drivecat.database.models import FileCategory

EXTENSION_CATEGORIES: dict[str, FileCategory] = {
    # Video
    "mp4": FileCategory.VIDEO,
    "mkv": FileCategory.VIDEO,
    "mov": FileCategory.VIDEO,
    "avi": FileCategory.VIDEO,
    "wmv": FileCategory.VIDEO,
    "flv": FileCategory.VIDEO,
    "webm": FileCategory.VIDEO,
    "mpg": FileCategory.VIDEO,
    "mpeg": FileCategory.VIDEO,
    "m4v": FileCategory.VIDEO,
    "ts": FileCategory.VIDEO,
    # Audio
    "mp3": FileCategory.AUDIO,
    "wav": FileCategory.AUDIO,
    "aac": FileCategory.AUDIO,
    "flac": FileCategory.AUDIO,
    "ogg": FileCategory.AUDIO,
    "m4a": FileCategory.AUDIO,
    "wma": FileCategory.AUDIO,
    # Image
    "jpg": FileCategory.IMAGE,
    "jpeg": FileCategory.IMAGE,
    "png": FileCategory.IMAGE,
    "gif": FileCategory.IMAGE,
    "bmp": FileCategory.IMAGE,
    "webp": FileCategory.IMAGE,
    "tiff": FileCategory.IMAGE,
    "tif": FileCategory.IMAGE,
    "svg": FileCategory.IMAGE,
    # Document
    "pdf": FileCategory.DOCUMENT,
    "doc": FileCategory.DOCUMENT,
    "docx": FileCategory.DOCUMENT,
    "xls": FileCategory.DOCUMENT,
    "xlsx": FileCategory.DOCUMENT,
    "ppt": FileCategory.DOCUMENT,
    "pptx": FileCategory.DOCUMENT,
    "txt": FileCategory.DOCUMENT,
    "rtf": FileCategory.DOCUMENT,
    # Archive
    "zip": FileCategory.ARCHIVE,
    "rar": FileCategory.ARCHIVE,
    "7z": FileCategory.ARCHIVE,
    "tar": FileCategory.ARCHIVE,
    "gz": FileCategory.ARCHIVE,
    # Executable
    "exe": FileCategory.EXECUTABLE,
    "msi": FileCategory.EXECUTABLE,
    "dll": FileCategory.EXECUTABLE,
    "bat": FileCategory.EXECUTABLE,
    "sh": FileCategory.EXECUTABLE,
}


def categorize(extension: str | None, is_directory: bool = False) -> FileCategory:
    if is_directory:
        return FileCategory.DIRECTORY
    if not extension:
        return FileCategory.OTHER
    return EXTENSION_CATEGORIES.get(extension.lower(), FileCategory.OTHER)
