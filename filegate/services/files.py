"""File lifecycle: upload, list, get, delete."""

import logging
from typing import List, Optional
from urllib.parse import quote

from filegate.core.errors import AccessDeniedError, NotFoundError, ValidationError, returns_outcome
from filegate.services.provisioner import TenantProvisioner
from filegate.stores.objects import ObjectProperties, ObjectStore

logger = logging.getLogger(__name__)


def inline_disposition(name: str) -> str:
    # browsers render rather than download; filename* carries non-ASCII names
    fallback = name.encode("ascii", "replace").decode("ascii").replace("\\", "\\\\").replace('"', '\\"')
    return f'inline; filename="{fallback}"; filename*=UTF-8\'\'{quote(name, safe="")}'


class FileService:
    def __init__(self, provisioner: TenantProvisioner, objects: ObjectStore):
        self.provisioner = provisioner
        self.objects = objects

    @returns_outcome
    def upload(self, user_id: str, file_name: str, content_type: Optional[str], data: bytes):
        """Store ``data`` under ``file_name``. Last writer wins."""
        if not file_name:
            raise ValidationError("No file was uploaded.")

        ref = self.provisioner.ensure(user_id)
        self.objects.put_object(
            ref.namespace,
            file_name,
            data,
            content_type=content_type,
            content_disposition=inline_disposition(file_name),
        )
        logger.info("Stored %s (%d bytes) in %s", file_name, len(data), ref.namespace)
        return file_name

    @returns_outcome
    def list_files(self, user_id: str):
        ref = self.provisioner.resolve(user_id)
        if not self.objects.namespace_exists(ref.namespace):
            return []

        files: List[ObjectProperties] = self.objects.list_properties(ref.namespace)
        if files:
            token = self.provisioner.ensure_credential(ref)
            for item in files:
                item.url = item.url + token
        return files

    @returns_outcome
    def get_file(self, user_id: str, file_name: str):
        if not file_name:
            raise ValidationError("User ID and Filename are required as query parameters.")

        ref = self.provisioner.resolve(user_id)
        if not self.objects.namespace_exists(ref.namespace):
            raise NotFoundError("File not found for this user.")

        properties = self.objects.get_properties(ref.namespace, file_name)
        if properties is None:
            raise NotFoundError(f"File '{file_name}' not found for user {ref.user_id}.")
        return properties

    @returns_outcome
    def delete_file(self, user_id: str, blob_name: str):
        """Returns True if an object was removed, False if it was already gone."""
        if not blob_name:
            raise ValidationError("User ID and blob name are required")

        ref = self.provisioner.resolve(user_id)
        deleted = self.objects.delete_if_exists(ref.namespace, blob_name)
        if deleted:
            logger.info("Deleted %s from %s", blob_name, ref.namespace)
        return deleted

    @returns_outcome
    def open_blob(self, namespace: str, name: str, token: str):
        """
        Open an object for reading on behalf of a delegated credential. The
        shared namespace is public and needs none.
        """
        public = namespace == self.objects.shared_namespace
        if not public and (not token or not self.objects.verify_credential(namespace, token, "r")):
            raise AccessDeniedError("Credential missing, invalid or expired for this namespace.")

        response = self.objects.open_object(namespace, name)
        if response is None:
            raise NotFoundError(f"File '{name}' not found.")
        return response
