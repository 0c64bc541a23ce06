"""Uploaded file registry and normalization of platform upload metadata."""

import tempfile
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path

from beartype import beartype

from app.core.logger import LogIcon, logger
from app.models.core import UploadedFile, UploadError
from app.models.messages import MessageItem

UploadGuard = Callable[[str], bool]

SIZE_ERRORS = frozenset({UploadError.INI_SIZE, UploadError.FORM_SIZE})


def uploaded_within(root: Path | None = None) -> UploadGuard:
    """Guard accepting only existing files inside the upload directory."""
    base = Path(root or tempfile.gettempdir()).resolve()

    def guard(path: str) -> bool:
        if not path:
            return False
        candidate = Path(path).resolve()
        return candidate.is_file() and candidate.is_relative_to(base)

    return guard


def _indexed(values) -> list[tuple[object, object]]:
    if isinstance(values, Mapping):
        return list(values.items())
    return list(enumerate(values))


@beartype
def normalize_uploads(raw: Mapping[str, Mapping]) -> dict[str, dict]:
    """Flatten per-field upload descriptors into one descriptor per file.

    A field delivering several files arrives as parallel arrays
    (``name``, ``type``, ``size``, ``tmp_name``, ``error``); its first file
    keeps the field name and later ones become ``field.index``.
    """
    flat: dict[str, dict] = {}
    for field, descriptor in raw.items():
        errors = descriptor.get("error")
        if not isinstance(errors, (list, tuple, Mapping)):
            flat[field] = dict(descriptor)
            continue
        columns = {k: dict(_indexed(v)) for k, v in descriptor.items() if isinstance(v, (list, tuple, Mapping))}
        for index, _ in _indexed(errors):
            name = field if index in (0, "0") else f"{field}.{index}"
            flat[name] = {k: column.get(index) for k, column in columns.items()}
    return flat


class FileRegistry:
    """Flat mapping from field name to uploaded file."""

    __slots__ = ("_files",)

    def __init__(self) -> None:
        self._files: dict[str, UploadedFile] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def set_file(self, name: str, finfo: UploadedFile | Mapping) -> None:
        if not isinstance(finfo, UploadedFile):
            finfo = UploadedFile.from_descriptor(dict(finfo))
        self._files[name] = finfo

    def set_file_content(
        self,
        name: str,
        content: bytes,
        filename: str | None = None,
        mimetype: str | None = None,
    ) -> None:
        self._files[name] = UploadedFile(
            name=filename if filename is not None else f"__set_file_content.{name}",
            type=mimetype,
            size=len(content),
            content=content,
        )

    def has_files(self) -> bool:
        return bool(self._files)

    def has_file(self, name: str) -> bool:
        return name in self._files

    def file(self, name: str) -> UploadedFile | None:
        return self._files.get(name)

    def files(self) -> dict[str, UploadedFile]:
        return dict(self._files)

    def file_filename(self, name: str) -> str | None:
        finfo = self._files.get(name)
        return finfo.name if finfo else None

    def file_size(self, name: str) -> int | None:
        finfo = self._files.get(name)
        return finfo.size if finfo else None

    def file_contents(self, name: str, offset: int = 0, maxlen: int | None = None) -> bytes | None:
        """Read a byte range of a file whether it lives in memory or on disk."""
        finfo = self._files.get(name)
        if finfo is None:
            return None
        if finfo.content is not None:
            end = None if maxlen is None else offset + maxlen
            return finfo.content[offset:end]
        if finfo.tmp_name is None:
            return None
        try:
            with open(finfo.tmp_name, "rb") as fh:
                fh.seek(offset)
                return fh.read() if maxlen is None else fh.read(maxlen)
        except OSError as ex:
            logger.warning("Cannot read uploaded file", icon=LogIcon.FILE, field=name, error=str(ex))
            return None

    def register_uploads(
        self,
        raw: Mapping[str, Mapping],
        guard: UploadGuard,
        max_filesize: int,
    ) -> list[MessageItem]:
        """Register delivered uploads and describe the failed ones."""
        errors: list[MessageItem] = []
        too_big = False
        for name, descriptor in normalize_uploads(raw).items():
            code = int(descriptor.get("error") or UploadError.OK)
            if code == UploadError.OK:
                if guard(descriptor.get("tmp_name") or ""):
                    self.set_file(name, descriptor)
                else:
                    logger.warning("Rejected upload outside upload channel", icon=LogIcon.FORBIDDEN, field=name)
                continue
            if code == UploadError.NO_FILE:
                continue
            landmark = descriptor.get("name")
            if code in SIZE_ERRORS:
                errors.append(MessageItem.error("Uploaded file too large", landmark=landmark))
                if not too_big:
                    errors.append(MessageItem.inform(f"The maximum upload size is {max_filesize} bytes."))
                    too_big = True
            elif code == UploadError.PARTIAL:
                errors.append(MessageItem.error("File upload interrupted", landmark=landmark))
            else:
                errors.append(MessageItem.error("Error uploading file", landmark=landmark))
            logger.info("Upload failed", icon=LogIcon.UPLOAD, field=name, code=code)
        return errors
