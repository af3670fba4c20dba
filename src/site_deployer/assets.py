"""
Mirror sync of a local build directory into an object store container.

Every file is uploaded, then the remote listing is read and keys that are not
part of the local build are deleted. Deletes never start before the last
upload finished, so an interrupted sync leaves the union of old and new
builds rather than a partial site.
"""
import os
import threading
from typing import Callable, List, Optional, Set

from .errors import ConfigurationError, DeploymentCancelled, DeploymentError, SyncFailure
from .interfaces import ObjectStore
from .models import AssetEntry, ScopedCredentials, SyncReport
from .utils.logging import DeployLogger

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".eot": "application/vnd.ms-fontobject",
    ".txt": "text/plain",
    ".xml": "application/xml",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".pdf": "application/pdf",
}

PROGRESS_EVERY = 50

StoreFactory = Callable[[ScopedCredentials], ObjectStore]


def content_type_for(path: str) -> str:
    ext = os.path.splitext(path)[1].lower()
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)


def scan_directory(local_dir: str) -> List[AssetEntry]:
    """Build the asset manifest for every file below ``local_dir``."""
    if not os.path.isdir(local_dir):
        raise ConfigurationError(
            f"Build output directory {local_dir} not found - build the app first"
        )

    entries = []
    for root, dirs, files in os.walk(local_dir):
        dirs.sort()
        for filename in sorted(files):
            full_path = os.path.join(root, filename)
            key = os.path.relpath(full_path, local_dir).replace(os.sep, "/")
            with open(full_path, 'rb') as f:
                content = f.read()
            entries.append(AssetEntry(key, content, content_type_for(filename)))
    return entries


class AssetSyncEngine:
    """Makes a remote container's key set equal to a local directory's files."""

    def __init__(self, store_factory: StoreFactory, logger: Optional[DeployLogger] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.store_factory = store_factory
        self.logger = logger or DeployLogger(__name__)
        self.cancel_event = cancel_event or threading.Event()

    def _check_cancelled(self) -> None:
        # Stopping between objects keeps the remote set a superset of the old build
        if self.cancel_event.is_set():
            raise DeploymentCancelled("Deployment cancelled during asset sync")

    def sync(self, local_dir: str, container: str, credentials: ScopedCredentials) -> SyncReport:
        """Upload the build, then delete remote orphans.

        Raises:
            ConfigurationError: if ``local_dir`` does not exist
            SyncFailure: if any upload, listing or delete fails
        """
        manifest = scan_directory(local_dir)
        store = self.store_factory(credentials)
        report = SyncReport()

        self.logger.info(f"Uploading {len(manifest)} files to {container}...")
        for entry in manifest:
            self._check_cancelled()
            try:
                store.put_object(container, entry.relative_path, entry.content, entry.content_type)
            except Exception as e:
                raise SyncFailure(f"Upload of {entry.relative_path} failed: {e}") from e
            report.uploaded.add(entry.relative_path)
            if len(report.uploaded) % PROGRESS_EVERY == 0:
                self.logger.info(f"   Uploaded {len(report.uploaded)}/{len(manifest)} files...")
        self.logger.success(f"Upload complete ({len(report.uploaded)} files)")

        self.logger.info("Cleaning up old files...")
        for key in sorted(self.list_remote(store, container) - report.uploaded):
            self._check_cancelled()
            try:
                store.delete_object(container, key)
            except Exception as e:
                raise SyncFailure(f"Delete of {key} failed: {e}") from e
            report.deleted.add(key)

        if report.deleted:
            self.logger.info(f"   Deleted {len(report.deleted)} old files")
        return report

    def list_remote(self, store: ObjectStore, container: str) -> Set[str]:
        """Every key in ``container``, following continuation tokens to the end."""
        keys: Set[str] = set()
        token = None
        while True:
            try:
                page = store.list_objects(container, token)
            except DeploymentError:
                raise
            except Exception as e:
                raise SyncFailure(f"Listing {container} failed: {e}") from e
            keys.update(page.keys)
            token = page.next_token
            if not token:
                return keys
