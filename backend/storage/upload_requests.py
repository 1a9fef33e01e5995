"""
Upload Request Kinds

POST /api/images accepts two body shapes. The content type is inspected
exactly once here and the body is turned into one of:

- DataUrlUpload      JSON {"dataUrl": "data:<mime>;base64,<payload>"}
- FormUpload         multipart / urlencoded imageUrls[], files[], webUrl
- UnsupportedUpload  anything else
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from fastapi import Request
from starlette.datastructures import UploadFile

from core.errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    name: str
    data: bytes


@dataclass
class DataUrlUpload:
    data_url: str


@dataclass
class FormUpload:
    image_urls: List[str] = field(default_factory=list)
    files: List[UploadedFile] = field(default_factory=list)
    web_url: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.image_urls and not self.files and not self.web_url


@dataclass
class UnsupportedUpload:
    content_type: str


UploadRequest = Union[DataUrlUpload, FormUpload, UnsupportedUpload]


def _get_all(form, name: str) -> list:
    """Form values under `name` or `name[]`."""
    return list(form.getlist(name)) + list(form.getlist(f"{name}[]"))


async def parse_upload_request(request: Request) -> UploadRequest:
    """
    Resolve the request body into an upload kind.

    Raises:
        ValidationError: JSON body without a dataUrl, or malformed JSON
    """
    content_type = request.headers.get("content-type", "")

    if "application/json" in content_type:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValidationError("Invalid JSON body", str(e)) from e
        data_url = body.get("dataUrl") if isinstance(body, dict) else None
        if not data_url or not isinstance(data_url, str):
            raise ValidationError("No data URL provided")
        return DataUrlUpload(data_url=data_url)

    if "multipart/form-data" in content_type or "application/x-www-form-urlencoded" in content_type:
        form = await request.form()
        upload = FormUpload()

        for value in _get_all(form, "imageUrls"):
            if isinstance(value, str) and value.strip():
                upload.image_urls.append(value.strip())

        for value in _get_all(form, "files"):
            if isinstance(value, UploadFile):
                data = await value.read()
                upload.files.append(UploadedFile(name=value.filename or "upload", data=data))

        web_url = form.get("webUrl")
        if isinstance(web_url, str) and web_url.strip():
            upload.web_url = web_url.strip()

        logger.info(
            f"[Storage] Form upload: {len(upload.image_urls)} URLs, "
            f"{len(upload.files)} files, webUrl={'yes' if upload.web_url else 'no'}"
        )
        return upload

    return UnsupportedUpload(content_type=content_type)
