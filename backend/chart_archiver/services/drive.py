"""
Drive 对象存储服务 - 归档目录、上传与清理
"""

from __future__ import annotations

import io
from typing import Any

from googleapiclient.http import MediaIoBaseUpload

from ..interfaces import IObjectStoreService
from .base import GoogleApiClient

FOLDER_MIME = "application/vnd.google-apps.folder"
LIST_PAGE_SIZE = 1000


def escape_query_value(value: str) -> str:
    """Drive 查询字符串转义"""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def folder_query(parent_id: str, name: str) -> str:
    return (
        f"'{escape_query_value(parent_id)}' in parents"
        f" and name = '{escape_query_value(name)}'"
        f" and mimeType = '{FOLDER_MIME}'"
        " and trashed = false"
    )


class DriveObjectStore(GoogleApiClient, IObjectStoreService):
    """基于 Drive v3 的对象存储"""

    def __init__(self, credentials: Any):
        super().__init__(credentials)
        self.drive = self._build("drive", "v3")

    async def find_folder(self, parent_id: str, name: str) -> str | None:
        request = self.drive.files().list(
            q=folder_query(parent_id, name),
            fields="files(id, name)",
            pageSize=1,
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        )
        files = (await self._execute(request)).get("files", [])
        return files[0]["id"] if files else None

    async def create_folder(self, parent_id: str, name: str) -> str:
        request = self.drive.files().create(
            body={"name": name, "mimeType": FOLDER_MIME, "parents": [parent_id]},
            fields="id",
            supportsAllDrives=True,
        )
        return (await self._execute(request))["id"]

    async def upload_file(self, parent_id: str, name: str, mime_type: str, data: bytes) -> str:
        media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
        request = self.drive.files().create(
            body={"name": name, "parents": [parent_id]},
            media_body=media,
            fields="id",
            supportsAllDrives=True,
        )
        return (await self._execute(request))["id"]

    async def delete_file(self, file_id: str) -> None:
        request = self.drive.files().delete(fileId=file_id, supportsAllDrives=True)
        await self._execute(request)

    async def trash_file(self, file_id: str) -> None:
        request = self.drive.files().update(
            fileId=file_id, body={"trashed": True}, supportsAllDrives=True
        )
        await self._execute(request)

    async def list_files(
        self, page_token: str | None = None
    ) -> tuple[list[dict[str, Any]], str | None]:
        request = self.drive.files().list(
            q="trashed = false",
            fields="nextPageToken, files(id, name, mimeType)",
            pageSize=LIST_PAGE_SIZE,
            pageToken=page_token,
        )
        data = await self._execute(request)
        return data.get("files", []), data.get("nextPageToken")

    async def empty_trash(self) -> None:
        await self._execute(self.drive.files().emptyTrash())
