from pydantic import  BaseModel
from datetime import datetime
from pydantic.config import ConfigDict

from content_hub.models.file import File


class FileResponse(BaseModel):
    id: int
    filename: str
    size: int
    mime_type: str
    description: str
    owner: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_file(cls, db_file: File) -> "FileResponse":
        return cls(
            id=db_file.id,
            filename=db_file.filename,
            size=db_file.size,
            mime_type=db_file.mime_type,
            description=db_file.description,
            owner=db_file.owner.username,
            created_at=db_file.uploaded_at,
        )

class UploadResult(BaseModel):
    id: int
    filename: str

class FileDeleted(BaseModel):
    status: str = "deleted"
    mode: str
