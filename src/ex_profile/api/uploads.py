"""Multipart helpers shared by every router that accepts files."""

from fastapi import UploadFile

from src.ex_profile.infrastructure.storage import UploadedFile


async def read_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        filename=upload.filename or "upload",
        content_type=upload.content_type or "",
        data=await upload.read(),
    )
