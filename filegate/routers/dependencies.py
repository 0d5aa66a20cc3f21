# filegate/routers/dependencies.py
from dataclasses import dataclass
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse

from filegate.core.config import Settings
from filegate.core.errors import Outcome
from filegate.services.files import FileService
from filegate.services.provisioner import TenantProvisioner
from filegate.services.transfers import TransferService
from filegate.stores.metadata import MetadataStore
from filegate.stores.objects import ObjectStore


@dataclass
class Services:
    settings: Settings
    metadata: MetadataStore
    objects: ObjectStore
    provisioner: TenantProvisioner
    files: FileService
    transfers: TransferService


def build_services(settings: Settings, metadata: MetadataStore, objects: ObjectStore) -> Services:
    provisioner = TenantProvisioner(objects, metadata)
    return Services(
        settings=settings,
        metadata=metadata,
        objects=objects,
        provisioner=provisioner,
        files=FileService(provisioner, objects),
        transfers=TransferService(provisioner, objects, metadata),
    )


# --- services dependency (wired once by the app factory) ---
def get_services(request: Request) -> Services:
    return request.app.state.services


def respond(outcome: Outcome, render: Callable[[object], dict]) -> JSONResponse:
    """Map an Outcome to a JSON response: the error kind picks the status."""
    if not outcome.ok:
        return JSONResponse(status_code=outcome.error.status_code, content=outcome.error.to_dict())
    return JSONResponse(status_code=200, content=render(outcome.value))
