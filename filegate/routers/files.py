from typing import Optional

from fastapi import APIRouter, Depends, File as FastAPIFile, Form, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError

from filegate.core.errors import ValidationError
from filegate.routers.dependencies import Services, get_services, respond
from filegate.schemas import (
    DeleteFileRequest,
    FileInfo,
    GetFileResponse,
    ListFilesResponse,
    RenameFileRequest,
    StatusResponse,
    UploadRequest,
)

router = APIRouter()


def _status(success: bool, message: str) -> dict:
    return StatusResponse(success=success, message=message).model_dump()


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content=ValidationError(message).to_dict())


# --- upload a file (multipart: "userId" JSON field + "file") ---
@router.post("/upload")
async def upload_file(
    user_id_json: Optional[str] = Form(None, alias="userId"),
    upload: Optional[UploadFile] = FastAPIFile(None, alias="file"),
    services: Services = Depends(get_services),
):
    if not user_id_json:
        return _bad_request("User ID is required in the form data.")

    try:
        request = UploadRequest.model_validate_json(user_id_json)
    except PydanticValidationError as exc:
        return _bad_request(f"Invalid userId format: {exc.errors()[0]['msg']}")
    if not request.user_id:
        return _bad_request("Invalid User ID format.")

    if upload is None or not upload.filename:
        return _bad_request("No file was uploaded.")

    content = await upload.read()
    # boto3 blocks; keep it off the event loop
    outcome = await run_in_threadpool(
        services.files.upload, request.user_id, upload.filename, upload.content_type, content
    )
    return respond(outcome, lambda name: _status(True, f"File {name} uploaded successfully."))


# --- properties of one file ---
@router.get("/getFile")
def get_file(
    userId: Optional[str] = None,
    fileName: Optional[str] = None,
    services: Services = Depends(get_services),
):
    if not userId or not fileName:
        return _bad_request("User ID and Filename are required as query parameters.")

    outcome = services.files.get_file(userId, fileName)
    return respond(
        outcome,
        lambda props: GetFileResponse(
            success=True,
            message="File information retrieved successfully.",
            file=FileInfo.from_properties(props),
        ).model_dump(by_alias=True, mode="json"),
    )


# --- list a user's files, each URL carrying the tenant credential ---
@router.get("/files/{userId}")
def list_files(userId: str, services: Services = Depends(get_services)):
    outcome = services.files.list_files(userId)

    def render(files):
        message = f"Found {len(files)} files." if files else "No files found for this user."
        return ListFilesResponse(
            success=True,
            message=message,
            files=[FileInfo.from_properties(item) for item in files],
        ).model_dump(by_alias=True, mode="json")

    return respond(outcome, render)


# --- delete a file ---
@router.delete("/deleteFile")
def delete_file(body: DeleteFileRequest, services: Services = Depends(get_services)):
    if not body.user_id or not body.blob_name:
        return _bad_request("User ID and blob name are required")

    outcome = services.files.delete_file(body.user_id, body.blob_name)
    if outcome.ok and not outcome.value:
        return JSONResponse(
            status_code=404,
            content=_status(False, f"Blob '{body.blob_name}' not found for user {body.user_id}"),
        )
    return respond(outcome, lambda _: _status(True, f"Successfully deleted file '{body.blob_name}'"))


# --- rename a file (server-side copy, then delete) ---
@router.put("/renameFile")
def rename_file(body: RenameFileRequest, services: Services = Depends(get_services)):
    if not body.user_id or not body.old_file_name or not body.new_file_name:
        return _bad_request("UserId, old file name, and new file name are required")

    outcome = services.transfers.rename(body.user_id, body.old_file_name, body.new_file_name)
    return respond(
        outcome,
        lambda result: _status(True, f"Successfully renamed '{result.old_name}' to '{result.new_name}'"),
    )
