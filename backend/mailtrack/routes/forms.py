"""
MailTrack Backend: Multipart Letter Forms
===========================================

What:  Reads the multipart body of letter create/update requests.
How:   Text fields are collected into a dict keyed by their wire names
       (`qrCode`, `from`, `to`, …) so the caller can validate them with the
       letter schemas; the optional `image` part becomes an ImageUpload.
       Empty text fields are treated as absent, except the `clearable` ones,
       which arrive as None so an update can unset them.
"""

from typing import Any, Collection, Dict, Optional, Tuple

from starlette.datastructures import UploadFile
from starlette.requests import Request

from mailtrack.services.file_service import ImageUpload

IMAGE_FIELD = "image"


async def read_letter_form(
    request: Request, clearable: Collection[str] = ()
) -> Tuple[Dict[str, Any], Optional[ImageUpload]]:
    form = await request.form()
    fields: Dict[str, Any] = {}
    image: Optional[ImageUpload] = None

    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            if key == IMAGE_FIELD and value.filename:
                try:
                    content = await value.read()
                    image = ImageUpload(filename=value.filename, content=content, content_length=value.size)
                finally:
                    await value.close()
            continue
        if value.strip():
            fields[key] = value.strip()
        elif key in clearable:
            fields[key] = None

    return fields, image
