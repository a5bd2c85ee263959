"""Transfer API routes — upload a batch, list or fetch files by share code."""

import os
import re
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.responses import StreamingResponse

from codedrop.dependencies import get_transfer_service
from codedrop.schemas.common import ErrorResponse
from codedrop.schemas.transfer import GroupListing, UploadResponse
from codedrop.services.transfer_service import BlobDownload, IncomingFile, TransferService
from codedrop.utils.storage import iter_file

router = APIRouter(tags=["transfers"])

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    410: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def content_disposition(filename: str) -> str:
    filename = re.sub(r'[\r\n"\\]', "_", filename)
    quoted = quote(filename)
    if quoted == filename:
        return f'attachment; filename="{filename}"'
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=utf-8''{quoted}"


@router.post("/upload", response_model=UploadResponse, responses=_ERRORS)
async def upload_files(
    request: Request,
    files: list[UploadFile | str] | None = File(None),
    service: TransferService = Depends(get_transfer_service),
):
    incoming = []
    for f in files or []:
        # Browsers send an empty, nameless part when no file was picked
        if isinstance(f, str) or (not f.filename and not f.size):
            continue
        service.check_size(f.size)
        data = await f.read()
        incoming.append(IncomingFile(data=data, original_name=f.filename or "file", mime_type=f.content_type))
    result = await service.upload(incoming, base_url=str(request.base_url))
    return UploadResponse.from_result(result)


@router.get(
    "/download/{code}",
    responses={200: {"model": GroupListing, "description": "Listing, or the file itself when `file` is given"}, **_ERRORS},
)
async def download(
    code: str,
    file: str | None = None,
    service: TransferService = Depends(get_transfer_service),
):
    result = await service.download(code, file)
    if isinstance(result, BlobDownload):
        size = os.fstat(result.handle.fileno()).st_size
        return StreamingResponse(
            iter_file(result.handle),
            media_type=result.media_type,
            headers={
                "Content-Disposition": content_disposition(result.file.original_name),
                "Content-Length": str(size),
            },
        )
    listing = GroupListing.from_group(result)
    return JSONResponse(listing.model_dump(mode="json", by_alias=True))
