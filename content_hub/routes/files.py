from fastapi import APIRouter, Depends, Form, UploadFile
from fastapi import File as FormFile
from sqlalchemy.ext.asyncio import AsyncSession

from content_hub.database import get_async_session
from content_hub.schemas.file import FileResponse, UploadResult, FileDeleted
from content_hub.schemas.share import ShareCreate, ShareCreated
from content_hub.storage.backend import BlobStorage, get_storage
from content_hub.models.file import File, FileState
from content_hub.core.deps import get_current_identity, get_uploader_identity
from content_hub.core.deps_file import get_file_or_404
from content_hub.core.identity import Identity
from content_hub.core.streaming import blob_response
from content_hub.services import files as file_service
from content_hub.services import shares as share_service


router = APIRouter(
    prefix="/files",
    tags=["Files"]
)

# -------------Upload files -----------------

@router.post("", response_model=UploadResult)
async def upload_file(
    file: UploadFile | None = FormFile(default=None),
    text: str | None = Form(default=None),
    description: str | None = Form(default=None),
    session: AsyncSession = Depends(get_async_session),
    storage: BlobStorage = Depends(get_storage),
    identity: Identity = Depends(get_uploader_identity),
):
    db_file = await file_service.upload(
        session,
        storage,
        owner_id=identity.user_id,
        fileobj=file.file if file is not None else None,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
        text=text,
        description=description,
    )
    return UploadResult(id=db_file.id, filename=db_file.filename)


#-----------List files-----------------

@router.get("", response_model=list[FileResponse])
async def list_files(
    session: AsyncSession = Depends(get_async_session),
    identity: Identity = Depends(get_current_identity),
):
    files = await file_service.list_files(session, identity)
    return [FileResponse.from_file(f) for f in files]


@router.get("/{file_id}", response_model=FileResponse)
async def get_file_info(db_file: File = Depends(get_file_or_404)):
    return FileResponse.from_file(db_file)


#-----------Content------------------

@router.get("/{file_id}/download")
async def download_file(
    db_file: File = Depends(get_file_or_404),
    storage: BlobStorage = Depends(get_storage),
):
    content = await file_service.open_content(storage, db_file)
    return blob_response(content, filename=db_file.filename, mime_type=db_file.mime_type, attachment=True)


@router.get("/{file_id}/stream")
async def stream_file(
    db_file: File = Depends(get_file_or_404),
    storage: BlobStorage = Depends(get_storage),
):
    content = await file_service.open_content(storage, db_file)
    return blob_response(content, filename=db_file.filename, mime_type=db_file.mime_type, attachment=False)

#-----------Delete-------------

@router.delete("/{file_id}", response_model=FileDeleted)
async def delete_file(
    file_id: int,
    session: AsyncSession = Depends(get_async_session),
    storage: BlobStorage = Depends(get_storage),
    identity: Identity = Depends(get_current_identity),
):
    state = await file_service.delete_file(session, storage, identity, file_id)
    return FileDeleted(mode="permanent" if state == FileState.PURGED else "soft")


#-----------Share-------------

@router.post("/{file_id}/share", response_model=ShareCreated)
async def create_share(
    file_id: int,
    payload: ShareCreate | None = None,
    session: AsyncSession = Depends(get_async_session),
    identity: Identity = Depends(get_current_identity),
):
    payload = payload or ShareCreate()
    share = await share_service.create_share(
        session,
        identity,
        file_id,
        require_login=payload.require_login,
        allow_username=payload.allow_username,
        max_views=payload.max_views,
        expires_in_days=payload.expires_in_days,
    )
    return ShareCreated.from_share(share)
