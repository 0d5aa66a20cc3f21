# filegate/schemas.py
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from filegate.stores.objects import ObjectProperties


class _Body(BaseModel):
    # fields are optional so missing ones reach our own 400, not FastAPI's 422
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class UploadRequest(_Body):
    user_id: Optional[str] = Field(None, alias="userId")


class DeleteFileRequest(_Body):
    user_id: Optional[str] = Field(None, alias="userId")
    blob_name: Optional[str] = Field(None, alias="blobName")


class RenameFileRequest(_Body):
    user_id: Optional[str] = Field(None, alias="userId")
    old_file_name: Optional[str] = Field(None, alias="oldFileName")
    new_file_name: Optional[str] = Field(None, alias="newFileName")


class ShareFileRequest(_Body):
    user_id: Optional[str] = Field(None, alias="userId")
    blob_url: Optional[str] = Field(None, alias="blobURL")
    share_name: Optional[str] = Field(None, alias="shareName")
    operation: Optional[str] = None
    uuid: Optional[str] = None


class FileInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    size_in_bytes: int = Field(alias="sizeInBytes")
    content_type: Optional[str] = Field(None, alias="contentType")
    last_modified: Optional[datetime] = Field(None, alias="lastModified")
    blob_url: str = Field(alias="blobUrl")
    metadata: Dict[str, str] = Field(default_factory=dict)
    md5_hash: Optional[str] = Field(None, alias="md5Hash")

    @classmethod
    def from_properties(cls, properties: ObjectProperties) -> "FileInfo":
        return cls(
            name=properties.name,
            size_in_bytes=properties.size,
            content_type=properties.content_type,
            last_modified=properties.last_modified,
            blob_url=properties.url,
            metadata=properties.metadata,
            md5_hash=properties.content_md5,
        )


class StatusResponse(BaseModel):
    success: bool
    message: str


class ListFilesResponse(StatusResponse):
    files: List[FileInfo] = Field(default_factory=list)


class GetFileResponse(StatusResponse):
    file: FileInfo


class ShareResponse(StatusResponse):
    model_config = ConfigDict(populate_by_name=True)

    share_url: str = Field(alias="shareUrl")
    source_etag: str = Field(alias="sourceEtag")


class ShareRecordInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    uuid: str
    name: str
    url: str
    user_id: str = Field(alias="userId")
    created_at: datetime = Field(alias="createdAt")
    source_etag: str = Field(alias="sourceEtag")
    operation: str


class ListSharesResponse(StatusResponse):
    shares: List[ShareRecordInfo] = Field(default_factory=list)
