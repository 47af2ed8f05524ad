"""
Document uploads - store, progress, cancellation, retry.

A DocumentStore puts bytes somewhere and returns a URL. UploadBatch drives
one upload per file on a thread pool, tracks each file's progress and
error, and hands submit_profile the finished UploadedDocument list.
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, Future
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .models import DocumentType, UploadedDocument, UserRole

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

CHUNK_SIZE = 64 * 1024


@dataclass
class UploadResult:
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.url is not None


class DocumentStore(ABC):
    """Blob storage for verification documents."""

    @abstractmethod
    def upload(self, account_id: str, filename: str, data: bytes,
               on_progress: Optional[ProgressCallback] = None,
               cancel_event: Optional[threading.Event] = None) -> UploadResult:
        """Store the bytes. Never raises for storage failures; returns UploadResult(error=...)."""
        pass


class LocalDocumentStore(DocumentStore):
    """Writes documents under {root}/{account_id}/ in chunks."""

    def __init__(self, root: Path, chunk_size: int = CHUNK_SIZE):
        self.root = Path(root)
        self.chunk_size = chunk_size

    def upload(self, account_id: str, filename: str, data: bytes,
               on_progress: Optional[ProgressCallback] = None,
               cancel_event: Optional[threading.Event] = None) -> UploadResult:
        safe_name = Path(filename).name
        if safe_name in ("", ".."):
            return UploadResult(error="file name is empty")
        if not data:
            return UploadResult(error="file is empty")

        folder = str(account_id).replace("/", "_").replace("\\", "_")
        if folder in ("", ".", ".."):
            return UploadResult(error="invalid account id")

        target = self.root / folder / safe_name
        partial = target.with_name(target.name + ".part")
        total = len(data)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(partial, "wb") as f:
                for offset in range(0, total, self.chunk_size):
                    if cancel_event is not None and cancel_event.is_set():
                        f.close()
                        partial.unlink(missing_ok=True)
                        return UploadResult(error="upload cancelled")
                    f.write(data[offset:offset + self.chunk_size])
                    if on_progress:
                        on_progress(min(100, int((offset + self.chunk_size) * 100 / total)))
            partial.replace(target)
        except OSError as e:
            logger.warning("Upload of %s for %s failed: %s", safe_name, account_id, e)
            partial.unlink(missing_ok=True)
            return UploadResult(error=str(e))

        return UploadResult(url=target.resolve().as_uri())


def infer_document_type(filename: str, role: UserRole) -> DocumentType:
    """Guess the document type from the file name."""
    name = filename.lower()
    if role is UserRole.VENDOR:
        if "gst" in name:
            return DocumentType.GST_CERTIFICATE
        if "pharmacy" in name:
            return DocumentType.PHARMACY_LICENSE
        return DocumentType.BUSINESS_LICENSE
    if "degree" in name:
        return DocumentType.DEGREE
    return DocumentType.LICENSE


@dataclass
class FileUpload:
    """Live state of one file in a batch."""
    filename: str
    document_type: DocumentType
    data: bytes
    progress: int = 0
    url: Optional[str] = None
    error: Optional[str] = None
    cancel_event: Optional[threading.Event] = None
    future: Optional[Future] = None

    @property
    def done(self) -> bool:
        return self.future is not None and self.future.done()

    def to_document(self) -> UploadedDocument:
        return UploadedDocument(
            document_type=self.document_type,
            document_url=self.url,
            filename=self.filename,
            progress=self.progress,
            error=self.error,
        )


class UploadBatch:
    """
    Upload several files for one account concurrently.

    Usage:
        batch = UploadBatch(store, "acct-1", UserRole.VETERINARIAN)
        batch.add("vci_license.pdf", license_bytes)
        batch.add("bvsc_degree.pdf", degree_bytes)
        batch.wait()
        engine.submit_profile("acct-1", data, batch.documents())
    """

    def __init__(self, store: DocumentStore, account_id: str, role: UserRole,
                 max_workers: int = 4, on_change: Optional[Callable[[FileUpload], None]] = None):
        self.store = store
        self.account_id = account_id
        self.role = role
        self.on_change = on_change
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="upload")
        self._lock = threading.Lock()
        self._files: dict[str, FileUpload] = {}

    def add(self, filename: str, data: bytes, document_type: Optional[DocumentType] = None) -> FileUpload:
        """Start uploading a file. Re-adding a name replaces the earlier upload."""
        upload = FileUpload(
            filename=filename,
            document_type=document_type or infer_document_type(filename, self.role),
            data=data,
        )
        with self._lock:
            previous = self._files.get(filename)
            if previous is not None and previous.cancel_event is not None:
                previous.cancel_event.set()
            self._files[filename] = upload
        self._start(upload)
        return upload

    def _start(self, upload: FileUpload) -> None:
        upload.progress = 0
        upload.url = None
        upload.error = None
        upload.cancel_event = threading.Event()
        upload.future = self._executor.submit(self._run, upload)

    def _run(self, upload: FileUpload) -> None:
        def on_progress(percent: int) -> None:
            upload.progress = percent
            self._changed(upload)

        try:
            result = self.store.upload(
                self.account_id, upload.filename, upload.data,
                on_progress=on_progress, cancel_event=upload.cancel_event,
            )
        except Exception as e:
            logger.exception("Document store raised for %s", upload.filename)
            result = UploadResult(error=str(e))

        if result.ok:
            upload.url = result.url
            upload.progress = 100
        else:
            upload.error = result.error or "upload failed"
        self._changed(upload)

    def _changed(self, upload: FileUpload) -> None:
        if self.on_change:
            try:
                self.on_change(upload)
            except Exception as e:
                logger.warning("Upload progress callback error: %s", e)

    def cancel(self, filename: str) -> bool:
        """Cancel an in-flight upload. Returns False if unknown or already finished."""
        with self._lock:
            upload = self._files.get(filename)
        if upload is None or upload.done:
            return False
        upload.cancel_event.set()
        return True

    def retry(self, filename: str) -> FileUpload:
        """Re-run a failed or cancelled upload."""
        with self._lock:
            upload = self._files.get(filename)
        if upload is None:
            raise KeyError(filename)
        if upload.future is not None and not upload.done:
            return upload
        self._start(upload)
        return upload

    def remove(self, filename: str) -> None:
        with self._lock:
            upload = self._files.pop(filename, None)
        if upload is not None and upload.cancel_event is not None:
            upload.cancel_event.set()

    def wait(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            futures = [u.future for u in self._files.values() if u.future is not None]
        for future in futures:
            future.result(timeout=timeout)

    @property
    def files(self) -> list[FileUpload]:
        with self._lock:
            return list(self._files.values())

    @property
    def is_complete(self) -> bool:
        """Every file finished without error."""
        files = self.files
        return bool(files) and all(f.done and f.url and not f.error for f in files)

    def documents(self) -> list[UploadedDocument]:
        """Every file as an UploadedDocument, finished or not."""
        return [f.to_document() for f in self.files]

    def completed_documents(self) -> list[UploadedDocument]:
        return [d for d in self.documents() if d.is_complete]

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "UploadBatch":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
