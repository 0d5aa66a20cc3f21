"""
Rename and share: two-step operations across objects with no transaction.

Rename is copy-then-delete inside one namespace. Share is a copy into the
shared namespace followed by a ledger write. Neither persists intermediate
state; the states below describe how far an attempt got, and for rename they
can be recovered afterwards from two facts: does the source still exist, and
does the destination exist.
"""

import logging
import posixpath
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlsplit

from filegate.core.errors import NotFoundError, ValidationError, returns_outcome
from filegate.models.share import SHARE_OPERATIONS
from filegate.services.files import inline_disposition
from filegate.services.provisioner import TenantProvisioner
from filegate.stores.metadata import MetadataStore
from filegate.stores.objects import ObjectStore

logger = logging.getLogger(__name__)


class RenameState(str, Enum):
    START = "start"
    SOURCE_CHECKED = "source_checked"
    COPIED = "copied"
    DELETED_SOURCE = "deleted_source"
    DONE = "done"

    @property
    def safe_to_retry(self) -> bool:
        # after the source is gone a retry would 404; the rename already landed
        return self in (RenameState.START, RenameState.SOURCE_CHECKED, RenameState.COPIED)

    @classmethod
    def from_facts(cls, source_exists: bool, destination_exists: bool) -> "RenameState":
        """
        Where a rename stands, judged from the objects alone.

        Both present means the copy landed but the delete did not: a
        recoverable duplicate, not a failure.
        """
        if source_exists and destination_exists:
            return cls.COPIED
        if source_exists:
            return cls.START
        if destination_exists:
            return cls.DONE
        return cls.START


class ShareState(str, Enum):
    SOURCE_RESOLVED = "source_resolved"
    COPIED = "copied"
    RECORDED = "recorded"

    @property
    def leaves_orphan(self) -> bool:
        return self is ShareState.COPIED


@dataclass
class RenameResult:
    old_name: str
    new_name: str
    state: RenameState


@dataclass
class ShareResult:
    share_url: str
    share_name: str
    source_etag: str
    state: ShareState


def split_blob_url(blob_url: str, namespace: Optional[str] = None):
    """
    Return (object name, extension) from an object URL, ignoring any query.

    With ``namespace`` the name is everything after the namespace segment, so
    keys containing "/" survive; otherwise it is the last path segment.
    """
    path = unquote(urlsplit(blob_url).path)
    marker = f"/{namespace}/" if namespace else None
    if marker and marker in path:
        name = path.split(marker, 1)[1]
    else:
        name = path.rsplit("/", 1)[-1]
    return name, posixpath.splitext(name)[1]


class TransferService:
    def __init__(self, provisioner: TenantProvisioner, objects: ObjectStore, metadata: MetadataStore):
        self.provisioner = provisioner
        self.objects = objects
        self.metadata = metadata

    @returns_outcome
    def rename(self, user_id: str, old_name: str, new_name: str):
        if not old_name or not new_name:
            raise ValidationError("UserId, old file name, and new file name are required")
        if old_name == new_name:
            raise ValidationError("Old and new file names are the same")

        ref = self.provisioner.resolve(user_id)
        if not self.objects.namespace_exists(ref.namespace):
            raise NotFoundError("User container not found")

        source = self.objects.get_properties(ref.namespace, old_name)
        if source is None:
            raise NotFoundError(f"Source file '{old_name}' not found")
        state = RenameState.SOURCE_CHECKED

        # copy before delete: an interruption leaves both names, never neither
        try:
            self.objects.copy_object(
                ref.namespace,
                old_name,
                ref.namespace,
                new_name,
                if_match=source.etag,
                replace_headers={
                    "ContentType": source.content_type or "application/octet-stream",
                    "ContentDisposition": inline_disposition(new_name),
                },
                metadata=source.metadata,
            )
            state = RenameState.COPIED
            self.objects.delete_object(ref.namespace, old_name)
            state = RenameState.DELETED_SOURCE
        except Exception:
            logger.warning(
                "Rename %s -> %s in %s stopped after %s (safe to retry: %s)",
                old_name,
                new_name,
                ref.namespace,
                state.value,
                state.safe_to_retry,
            )
            raise

        logger.info("Renamed %s -> %s in %s", old_name, new_name, ref.namespace)
        return RenameResult(old_name=old_name, new_name=new_name, state=RenameState.DONE)

    def rename_state(self, user_id: str, old_name: str, new_name: str) -> RenameState:
        ref = self.provisioner.resolve(user_id)
        return RenameState.from_facts(
            self.objects.object_exists(ref.namespace, old_name),
            self.objects.object_exists(ref.namespace, new_name),
        )

    @returns_outcome
    def share(self, user_id: str, blob_url: str, share_name: str, operation: str, share_uuid: str):
        if not all([user_id, blob_url, share_name, operation, share_uuid]):
            raise ValidationError("Missing required parameters")
        if operation not in SHARE_OPERATIONS:
            raise ValidationError(
                f"Invalid operation '{operation}'; expected one of: {', '.join(SHARE_OPERATIONS)}",
                details={"operation": operation},
            )

        ref = self.provisioner.resolve(user_id)
        source_name, extension = split_blob_url(blob_url, ref.namespace)
        if not source_name:
            raise ValidationError("blobURL does not name a file", details={"blobURL": blob_url})

        if not self.objects.namespace_exists(ref.namespace):
            raise NotFoundError("Source container not found")

        # the properties fetch doubles as the existence check
        source = self.objects.get_properties(ref.namespace, source_name)
        if source is None or not source.etag:
            raise NotFoundError("Source file not found")
        source_etag = source.etag
        state = ShareState.SOURCE_RESOLVED

        shared = self.objects.shared_namespace
        destination_name = share_name + extension
        share_url = self.objects.object_url(shared, destination_name)
        try:
            self.objects.ensure_namespace(shared)
            self.objects.copy_object(
                ref.namespace,
                source_name,
                shared,
                destination_name,
                if_match=source_etag,
                replace_headers={
                    "ContentType": source.content_type or "application/octet-stream",
                    "ContentDisposition": inline_disposition(posixpath.basename(destination_name)),
                },
                metadata=source.metadata,
            )
            state = ShareState.COPIED
            self.metadata.insert_share(share_uuid, share_name, share_url, ref.user_id, source_etag, operation)
            state = ShareState.RECORDED
        except Exception:
            if state.leaves_orphan:
                logger.warning("Share %s copied to %s but not recorded; public object is orphaned", share_uuid, share_url)
            raise

        logger.info("Shared %s/%s as %s (%s)", ref.namespace, source_name, share_url, operation)
        return ShareResult(share_url=share_url, share_name=share_name, source_etag=source_etag, state=state)

    @returns_outcome
    def list_shares(self, user_id: str):
        ref = self.provisioner.resolve(user_id)
        return self.metadata.list_shares(ref.user_id)
