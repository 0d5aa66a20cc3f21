"""
Object store adapter over S3.

One bucket per tenant (the tenant's namespace) plus a shared bucket that
shares are published into. Every boto call that fails comes back as an
``UpstreamFailure`` carrying the S3 error code and HTTP status, so the
transport layer can pass the backend's status through.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from filegate.core import credentials
from filegate.core.config import Settings
from filegate.core.errors import ConflictError, NotFoundError, UpstreamFailure, ValidationError

logger = logging.getLogger(__name__)

STORE_NAME = "object-store"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
NAMESPACE_PERMISSIONS = "rwl"

_BUCKET_NAME = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
# BucketAlreadyExists means another account owns the name: a real failure
_ALREADY_EXISTS_CODES = {"BucketAlreadyOwnedByYou"}


@dataclass
class ObjectProperties:
    name: str
    size: int
    content_type: Optional[str]
    last_modified: Optional[datetime]
    url: str
    etag: Optional[str] = None
    content_md5: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


def normalize_user_id(user_id: Optional[str]) -> str:
    user_id = (user_id or "").strip().lower()
    if not user_id:
        raise ValidationError("User ID is required.")
    return user_id


def _strip_etag(etag: Optional[str]) -> Optional[str]:
    return etag.strip('"') if etag else None


def _md5_from_etag(etag: Optional[str]) -> Optional[str]:
    # single-part uploads: the ETag is the hex MD5 of the body
    if not etag or "-" in etag or len(etag) != 32:
        return None
    try:
        return base64.b64encode(binascii.unhexlify(etag)).decode("ascii")
    except (binascii.Error, ValueError):
        return None


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _upstream(operation: str, exc: Exception) -> UpstreamFailure:
    if isinstance(exc, ClientError):
        return UpstreamFailure(
            STORE_NAME,
            operation,
            exc.response.get("Error", {}).get("Message") or str(exc),
            status_code=exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            error_code=_error_code(exc) or None,
        )
    return UpstreamFailure(STORE_NAME, operation, str(exc))


class ObjectStore:
    def __init__(self, client, settings: Settings):
        self.client = client
        self.region = settings.aws_region
        self.namespace_prefix = settings.namespace_prefix
        self.shared_namespace = settings.shared_namespace
        self.credential_lifetime = timedelta(days=settings.credential_lifetime_days)
        self._signing_key = settings.credential_signing_key.get_secret_value().encode("utf-8")
        self._base_url = (settings.blob_base_url or client.meta.endpoint_url).rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStore":
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.aws_endpoint_url,
        )
        return cls(client, settings)

    # --- namespaces ---

    def namespace_for(self, user_id: str) -> str:
        namespace = self.namespace_prefix + normalize_user_id(user_id)
        if not _BUCKET_NAME.match(namespace):
            raise ValidationError(
                f"User ID '{user_id}' cannot be used as a storage namespace.",
                details={"namespace": namespace},
            )
        return namespace

    def namespace_exists(self, namespace: str) -> bool:
        try:
            self.client.head_bucket(Bucket=namespace)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return False
            raise _upstream("head_bucket", exc) from exc
        except BotoCoreError as exc:
            raise _upstream("head_bucket", exc) from exc
        return True

    def create_namespace(self, namespace: str) -> None:
        """Create a namespace. Raises ConflictError if it already exists."""
        kwargs = {"Bucket": namespace}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as exc:
            if _error_code(exc) in _ALREADY_EXISTS_CODES:
                raise ConflictError(
                    f"Namespace '{namespace}' already exists.",
                    details={"namespace": namespace},
                ) from exc
            raise _upstream("create_bucket", exc) from exc
        except BotoCoreError as exc:
            raise _upstream("create_bucket", exc) from exc

    def ensure_namespace(self, namespace: str) -> None:
        if self.namespace_exists(namespace):
            return
        try:
            self.create_namespace(namespace)
        except ConflictError:
            pass

    # --- objects ---

    def object_url(self, namespace: str, name: str) -> str:
        return f"{self._base_url}/{namespace}/{quote(name)}"

    def put_object(
        self,
        namespace: str,
        name: str,
        data: bytes,
        content_type: Optional[str] = None,
        content_disposition: Optional[str] = None,
    ) -> Optional[str]:
        kwargs = {
            "Bucket": namespace,
            "Key": name,
            "Body": data,
            "ContentType": content_type or DEFAULT_CONTENT_TYPE,
        }
        if content_disposition:
            kwargs["ContentDisposition"] = content_disposition
        try:
            response = self.client.put_object(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise _upstream("put_object", exc) from exc
        return _strip_etag(response.get("ETag"))

    def get_properties(self, namespace: str, name: str) -> Optional[ObjectProperties]:
        """Return an object's properties, or None if it does not exist."""
        try:
            head = self.client.head_object(Bucket=namespace, Key=name)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return None
            raise _upstream("head_object", exc) from exc
        except BotoCoreError as exc:
            raise _upstream("head_object", exc) from exc

        etag = _strip_etag(head.get("ETag"))
        return ObjectProperties(
            name=name,
            size=head.get("ContentLength", 0),
            content_type=head.get("ContentType"),
            last_modified=head.get("LastModified"),
            url=self.object_url(namespace, name),
            etag=etag,
            content_md5=_md5_from_etag(etag),
            metadata=dict(head.get("Metadata") or {}),
        )

    def object_exists(self, namespace: str, name: str) -> bool:
        return self.get_properties(namespace, name) is not None

    def iter_object_names(self, namespace: str) -> Iterator[str]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=namespace):
                for item in page.get("Contents", []):
                    yield item["Key"]
        except (ClientError, BotoCoreError) as exc:
            raise _upstream("list_objects_v2", exc) from exc

    def list_properties(self, namespace: str) -> List[ObjectProperties]:
        files = []
        for name in self.iter_object_names(namespace):
            properties = self.get_properties(namespace, name)
            # deleted between the listing and the head
            if properties is not None:
                files.append(properties)
        return files

    def copy_object(
        self,
        source_namespace: str,
        source_name: str,
        destination_namespace: str,
        destination_name: str,
        if_match: Optional[str] = None,
        replace_headers: Optional[Dict[str, str]] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        """
        Server-side copy. Returns the destination ETag.

        ``if_match`` makes the copy conditional on the source's ETag.
        ``replace_headers`` (ContentType / ContentDisposition) switches the
        metadata directive to REPLACE; ``metadata`` is carried over with them.
        """
        kwargs = {
            "Bucket": destination_namespace,
            "Key": destination_name,
            "CopySource": {"Bucket": source_namespace, "Key": source_name},
        }
        if if_match:
            kwargs["CopySourceIfMatch"] = f'"{if_match}"'
        if replace_headers:
            kwargs["MetadataDirective"] = "REPLACE"
            kwargs.update(replace_headers)
            kwargs["Metadata"] = metadata or {}
        try:
            response = self.client.copy_object(**kwargs)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise NotFoundError(
                    f"Source file '{source_name}' not found",
                    details={"namespace": source_namespace},
                ) from exc
            raise _upstream("copy_object", exc) from exc
        except BotoCoreError as exc:
            raise _upstream("copy_object", exc) from exc
        return _strip_etag(response.get("CopyObjectResult", {}).get("ETag"))

    def delete_object(self, namespace: str, name: str) -> None:
        try:
            self.client.delete_object(Bucket=namespace, Key=name)
        except (ClientError, BotoCoreError) as exc:
            raise _upstream("delete_object", exc) from exc

    def delete_if_exists(self, namespace: str, name: str) -> bool:
        """Delete an object. Returns False when there was nothing to delete."""
        if not self.namespace_exists(namespace) or not self.object_exists(namespace, name):
            return False
        self.delete_object(namespace, name)
        return True

    def open_object(self, namespace: str, name: str):
        """Return the raw get_object response, or None if the object is absent."""
        try:
            return self.client.get_object(Bucket=namespace, Key=name)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                return None
            raise _upstream("get_object", exc) from exc
        except BotoCoreError as exc:
            raise _upstream("get_object", exc) from exc

    # --- delegated credentials ---

    def issue_credential(
        self,
        namespace: str,
        permissions: str = NAMESPACE_PERMISSIONS,
        start: Optional[datetime] = None,
        lifetime: Optional[timedelta] = None,
    ) -> credentials.DelegatedCredential:
        start = start or datetime.now(timezone.utc)
        end = start + (lifetime or self.credential_lifetime)
        return credentials.issue(self._signing_key, namespace, permissions, start, end)

    def verify_credential(self, namespace: str, token: str, permission: str = "r") -> bool:
        return credentials.verify(self._signing_key, token, namespace, permission)
