"""
MailTrack Backend: Stored Image Route
=======================================

What:  Serves letter images saved by the file service. Letter responses
       link here through their `image` URL.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from mailtrack.schemas.common import ErrorResponse
from mailtrack.services.file_service import file_service

router = APIRouter(tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    responses={
        200: {"description": "Image file"},
        400: {"description": "Path outside the storage root", "model": ErrorResponse},
        404: {"description": "File not found", "model": ErrorResponse},
    },
    summary="Serve a stored letter image",
)
async def serve_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve(file_path)
    return FileResponse(
        path=str(full_path),
        headers={"Cache-Control": "public, max-age=86400"},
    )
