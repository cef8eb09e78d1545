# backend/services/drive_service.py
import io
import logging
from contextlib import contextmanager
from typing import Optional
import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from errors import RemoteUnavailable, QuotaExceeded
from models import User

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/drive.file']
FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
ROOT_FOLDER_ID = 'root'
QUOTA_REASONS = {'storageQuotaExceeded'}

def build_credentials(user: User) -> Credentials:
    """Credentials from the user's stored grant. google-auth refreshes them in place when expired."""
    return Credentials(
        token=user.oauth_access_token,
        refresh_token=user.oauth_refresh_token,
        token_uri='https://oauth2.googleapis.com/token',
        client_id=GOOGLE_CLIENT_ID,
        client_secret=GOOGLE_CLIENT_SECRET,
        scopes=SCOPES,
        expiry=user.oauth_token_expiry,
    )

def get_drive_service(user: User, creds: Optional[Credentials] = None):
    """Builds and returns an authenticated Google Drive API service object."""
    creds = creds or build_credentials(user)
    try:
        return build('drive', 'v3', credentials=creds, cache_discovery=False)
    except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as error:
        logger.error("Could not build the Drive service for user %s: %s", user.id, error)
        raise RemoteUnavailable() from error

def _is_quota_error(error: HttpError) -> bool:
    details = error.error_details if isinstance(error.error_details, list) else []
    reasons = {d.get('reason') for d in details if isinstance(d, dict)}
    return bool(reasons & QUOTA_REASONS)

@contextmanager
def remote_call(action: str):
    """Translates Drive client failures into RemoteUnavailable / QuotaExceeded."""
    try:
        yield
    except HttpError as error:
        logger.error("Drive %s failed with HTTP %s: %s", action, error.resp.status, error)
        if _is_quota_error(error):
            raise QuotaExceeded() from error
        raise RemoteUnavailable() from error
    except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as error:
        logger.error("Drive %s failed: %r", action, error)
        raise RemoteUnavailable() from error

def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"

def find_folder(service, name: str, parent_id: str) -> Optional[str]:
    query = (
        f"name = {_quote(name)} and {_quote(parent_id)} in parents "
        f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
    )
    with remote_call("folder lookup"):
        result = service.files().list(q=query, fields='files(id, name)', spaces='drive').execute()
    files = result.get('files', [])
    return files[0]['id'] if files else None

def create_folder(service, name: str, parent_id: str) -> str:
    body = {'name': name, 'mimeType': FOLDER_MIME_TYPE, 'parents': [parent_id]}
    with remote_call("folder creation"):
        folder = service.files().create(body=body, fields='id').execute()
    logger.info("Created Drive folder %r under %s", name, parent_id)
    return folder['id']

def resolve_folder(service, folder_path: str, root_id: str = ROOT_FOLDER_ID) -> str:
    """Walks folder_path from root_id, creating missing segments, and returns the last folder's id.

    No locking happens here; two callers resolving the same missing path at once
    can both create it. Callers in this process serialize through receipt_service.
    """
    parent_id = root_id
    for segment in (s for s in folder_path.split('/') if s):
        parent_id = find_folder(service, segment, parent_id) or create_folder(service, segment, parent_id)
    return parent_id

def upload_file(service, data: bytes, folder_id: str, file_name: str, mime_type: str) -> dict:
    """Uploads data into folder_id. Returns id, webViewLink and, when Drive has one ready, thumbnailLink."""
    media = MediaIoBaseUpload(io.BytesIO(data), mimetype=mime_type, resumable=False)
    body = {'name': file_name, 'parents': [folder_id]}
    with remote_call("upload"):
        uploaded = service.files().create(
            body=body, media_body=media, fields='id, webViewLink, thumbnailLink'
        ).execute()
    logger.info("Uploaded %s (%d bytes) to Drive folder %s", file_name, len(data), folder_id)
    return uploaded

def delete_file(service, file_id: str) -> None:
    with remote_call("delete"):
        service.files().delete(fileId=file_id).execute()
    logger.info("Deleted Drive file %s", file_id)
