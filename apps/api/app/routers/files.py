from __future__ import annotations

import mimetypes

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from app.security import verify_storage_signature
from app.storage import BUCKETS, StorageError, get_storage

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{bucket}/{path:path}")
async def get_file(bucket: str, path: str, expires: int | None = None, signature: str | None = None) -> FileResponse:
  b = BUCKETS.get(bucket)
  if not b:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
  if not b.public:
    if expires is None or not signature or not verify_storage_signature(bucket, path, expires=expires, signature=signature):
      raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired link")
  try:
    full = get_storage().open_path(bucket, path)
  except StorageError:
    full = None
  if not full:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
  media_type = mimetypes.guess_type(full)[0] or "application/octet-stream"
  return FileResponse(path=full, media_type=media_type, filename=path.rsplit("/", 1)[-1])
