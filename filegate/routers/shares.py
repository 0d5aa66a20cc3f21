from fastapi import APIRouter, Depends

from filegate.routers.dependencies import Services, get_services, respond
from filegate.schemas import ListSharesResponse, ShareFileRequest, ShareRecordInfo, ShareResponse

router = APIRouter()


# --- publish a copy of a file into the shared namespace ---
@router.post("/shareOperation")
def share_file(body: ShareFileRequest, services: Services = Depends(get_services)):
    # field presence and the operation value are checked by the service,
    # before any store is touched
    outcome = services.transfers.share(
        body.user_id, body.blob_url, body.share_name, body.operation, body.uuid
    )
    return respond(
        outcome,
        lambda result: ShareResponse(
            success=True,
            message=f"Successfully shared file '{body.blob_url}' as '{result.share_url}'",
            share_url=result.share_url,
            source_etag=result.source_etag,
        ).model_dump(by_alias=True),
    )


# --- share records owned by a user ---
@router.get("/shares/{userId}")
def list_shares(userId: str, services: Services = Depends(get_services)):
    outcome = services.transfers.list_shares(userId)
    return respond(
        outcome,
        lambda records: ListSharesResponse(
            success=True,
            message=f"Found {len(records)} shares.",
            shares=[ShareRecordInfo.model_validate(record) for record in records],
        ).model_dump(by_alias=True, mode="json"),
    )
