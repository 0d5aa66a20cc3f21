from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from filegate.routers.dependencies import Services, get_services, respond

router = APIRouter()

DOWNLOAD_CHUNK_SIZE = 64 * 1024


# --- download a file with the credential appended to its URL ---
@router.get("/blob/{namespace}/{name:path}")
def download_blob(namespace: str, name: str, request: Request, services: Services = Depends(get_services)):
    token = request.url.query
    outcome = services.files.open_blob(namespace, name, "?" + token if token else "")
    if not outcome.ok:
        return respond(outcome, dict)

    obj = outcome.value
    headers = {}
    if obj.get("ContentDisposition"):
        headers["Content-Disposition"] = obj["ContentDisposition"]
    if obj.get("ETag"):
        headers["ETag"] = obj["ETag"]

    return StreamingResponse(
        obj["Body"].iter_chunks(DOWNLOAD_CHUNK_SIZE),
        media_type=obj.get("ContentType") or "application/octet-stream",
        headers=headers,
    )
