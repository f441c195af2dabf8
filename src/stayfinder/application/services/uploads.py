"""Serviço de upload de imagens (multipart)."""

from __future__ import annotations

import mimetypes
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from stayfinder.application.services.base import ApiService

PROPERTY_FOLDER = "properties"

# (nome do arquivo, conteúdo, content-type)
UploadFile = tuple[str, bytes, str]
FileInput = str | Path | UploadFile


def to_upload_file(source: FileInput) -> UploadFile:
    """Normaliza caminho local ou tupla pronta para o formato do httpx."""
    if isinstance(source, tuple):
        return source
    path = Path(source)
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return path.name, path.read_bytes(), content_type


class UploadService(ApiService):
    """Endpoints /uploads/*."""

    async def upload_single_image(self, image: FileInput, folder: str | None = None) -> Any:
        return await self._upload("/uploads/single", [("image", to_upload_file(image))], folder)

    async def upload_multiple_images(
        self, images: Iterable[FileInput], folder: str | None = None
    ) -> Any:
        files = [("images", to_upload_file(image)) for image in images]
        if not files:
            raise ValueError("At least one image is required")
        return await self._upload("/uploads/multiple", files, folder)

    async def upload_property_image(self, image: FileInput) -> Any:
        return await self._upload(
            "/uploads/property/single", [("image", to_upload_file(image))], PROPERTY_FOLDER
        )

    async def upload_property_images(self, images: Iterable[FileInput]) -> Any:
        files = [("images", to_upload_file(image)) for image in images]
        if not files:
            raise ValueError("At least one image is required")
        return await self._upload("/uploads/property/multiple", files, PROPERTY_FOLDER)

    async def _upload(
        self, path: str, files: list[tuple[str, UploadFile]], folder: str | None
    ) -> Any:
        data = {"folder": folder} if folder else None
        return await self._http.post(path, files=files, data=data)
