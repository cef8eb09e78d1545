# backend/services/receipt_service.py
import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

import storage
from errors import UpstreamFailure
from models import User, Receipt, utcnow
from services import drive_service
from services.folder_paths import derive_folder_path, make_file_name
from services.image_service import compress_image, JPEG_MIME_TYPE

logger = logging.getLogger(__name__)

# One lock per (user id, folder path) so uploads in this process never race on folder creation.
_folder_locks: defaultdict = defaultdict(asyncio.Lock)


async def resolve_user_folder(service, user: User, folder_path: str) -> str:
    async with _folder_locks[(user.id, folder_path)]:
        return await run_in_threadpool(drive_service.resolve_folder, service, folder_path)

def keep_refreshed_credentials(session: AsyncSession, user: User, creds) -> None:
    """Stores a token google-auth refreshed during the request; the next commit writes it."""
    if creds.token and creds.token != user.oauth_access_token:
        user.oauth_access_token = creds.token
        user.oauth_token_expiry = creds.expiry
        session.add(user)
        logger.info("Refreshed Google credentials for user %s", user.id)

async def upload_receipt(
    session: AsyncSession, user: User, data: bytes, original_name: str, now: Optional[datetime] = None
) -> Receipt:
    """Compresses the image, files it under receipts/<user>/<date> in Drive and records it.

    The image is transformed before any remote call, so a bad payload never
    leaves anything behind. A Drive failure after folders were created leaves
    those folders in place.
    """
    compressed = compress_image(data)
    now = now or utcnow()
    folder_path = derive_folder_path(now, user.email)
    file_name = make_file_name(now)

    creds = drive_service.build_credentials(user)
    service = drive_service.get_drive_service(user, creds)
    folder_id = await resolve_user_folder(service, user, folder_path)
    uploaded = await run_in_threadpool(
        drive_service.upload_file, service, compressed, folder_id, file_name, JPEG_MIME_TYPE
    )
    keep_refreshed_credentials(session, user, creds)

    receipt = Receipt(
        userId=user.id,
        fileName=file_name,
        originalName=original_name,
        googleDriveId=uploaded['id'],
        driveUrl=uploaded.get('webViewLink') or "",
        thumbnailUrl=uploaded.get('thumbnailLink'),
        fileSize=len(compressed),
        mimeType=JPEG_MIME_TYPE,
        uploadDate=now,
        folderPath=folder_path,
    )
    receipt = await storage.create_receipt(session, receipt)
    logger.info("Stored receipt %s for user %s in %s", receipt.id, user.id, folder_path)
    return receipt

async def delete_receipt(session: AsyncSession, user: User, receipt_id: int) -> None:
    receipt = await storage.get_owned_receipt(session, receipt_id, user.id)
    creds = drive_service.build_credentials(user)
    try:
        service = drive_service.get_drive_service(user, creds)
        await run_in_threadpool(drive_service.delete_file, service, receipt.googleDriveId)
    except UpstreamFailure as e:
        # The local record goes regardless; the Drive file is left orphaned.
        logger.warning("Drive delete of %s failed for receipt %s: %s", receipt.googleDriveId, receipt.id, e)
    keep_refreshed_credentials(session, user, creds)
    await storage.delete_receipt(session, receipt)
    logger.info("Deleted receipt %s for user %s", receipt_id, user.id)
