"""
Tenant provisioning.

The namespace is the gate: if it exists the tenant is provisioned and nothing
else is checked. Otherwise the user row, the namespace and a delegated
credential are created in that order. Each step can be re-run:

* the user insert is a no-op when the row is already there;
* a namespace create that reports "already exists" means a concurrent request
  won the race, which counts as provisioned;
* a credential is issued only when the tenant has no valid one on record.
  Two racers can both pass that check, leaving two credential rows. That
  duplicate is tolerated; lookups return the first-issued row.
"""

import logging
from dataclasses import dataclass

from filegate.core.errors import ConflictError, UpstreamFailure, returns_outcome
from filegate.stores.metadata import MetadataStore
from filegate.stores.objects import ObjectStore, normalize_user_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamespaceRef:
    user_id: str
    namespace: str
    created: bool = False


class TenantProvisioner:
    def __init__(self, objects: ObjectStore, metadata: MetadataStore):
        self.objects = objects
        self.metadata = metadata

    def resolve(self, user_id: str) -> NamespaceRef:
        """Normalize the user id and name its namespace. No backend calls."""
        normalized = normalize_user_id(user_id)
        return NamespaceRef(user_id=normalized, namespace=self.objects.namespace_for(normalized))

    def _step(self, step: str, func, *args):
        try:
            return func(*args)
        except UpstreamFailure as exc:
            raise exc.at_step(step) from exc

    def ensure(self, user_id: str) -> NamespaceRef:
        ref = self.resolve(user_id)

        if self._step("check-namespace", self.objects.namespace_exists, ref.namespace):
            return ref

        if self._step("insert-user", self.metadata.insert_user, ref.user_id):
            logger.info("Inserted user %s", ref.user_id)

        try:
            self._step("create-namespace", self.objects.create_namespace, ref.namespace)
        except ConflictError:
            logger.warning("Namespace %s created concurrently; treating as provisioned", ref.namespace)
            return ref
        logger.info("Created namespace %s", ref.namespace)

        self.ensure_credential(ref)
        return NamespaceRef(user_id=ref.user_id, namespace=ref.namespace, created=True)

    def ensure_credential(self, ref: NamespaceRef) -> str:
        """
        Return the tenant's valid credential token, issuing one if none is on
        record. Also repairs a tenant whose provisioning stopped after the
        namespace was created.
        """
        existing = self._step("lookup-credential", self.metadata.get_credential, ref.user_id)
        if existing is not None:
            return existing.token

        # credential rows reference users; no-op on the normal path
        self._step("insert-user", self.metadata.insert_user, ref.user_id)
        credential = self.objects.issue_credential(ref.namespace)
        self._step(
            "persist-credential",
            self.metadata.insert_credential,
            ref.user_id,
            credential.token,
            credential.start,
            credential.end,
        )
        logger.info("Issued credential for %s valid until %s", ref.namespace, credential.end.isoformat())
        return credential.token

    @returns_outcome
    def ensure_tenant(self, user_id: str):
        return self.ensure(user_id)
