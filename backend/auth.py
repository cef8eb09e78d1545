# backend/auth.py
import logging
from datetime import timedelta
from typing import Optional
from fastapi import Depends, Request
from authlib.integrations.starlette_client import OAuth
from sqlalchemy.ext.asyncio import AsyncSession

import storage
from config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from database import get_session
from errors import BadRequest, NotAuthenticated
from models import User, utcnow

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"

oauth = OAuth()
oauth.register(
    name='google', client_id=GOOGLE_CLIENT_ID, client_secret=GOOGLE_CLIENT_SECRET,
    server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
    client_kwargs={'scope': 'openid email profile https://www.googleapis.com/auth/drive.file'}
)

async def build_authorization_url() -> str:
    assert oauth.google is not None
    rv = await oauth.google.create_authorization_url(
        GOOGLE_REDIRECT_URI, access_type='offline', prompt='consent'
    )
    return rv['url']

async def fetch_token(code: str) -> dict:
    """Exchanges an authorization code for Google tokens. Raises authlib's OAuthError on rejection."""
    assert oauth.google is not None
    return await oauth.google.fetch_access_token(code=code, redirect_uri=GOOGLE_REDIRECT_URI)

async def fetch_user_info(token: dict) -> dict:
    assert oauth.google is not None
    return dict(await oauth.google.userinfo(token=token))

def has_required_user_info(user_info: dict) -> bool:
    return all(user_info.get(key) for key in ('sub', 'email', 'name'))

async def find_or_create_user(session: AsyncSession, user_info: dict, token: dict) -> User:
    google_id = user_info.get('sub')
    if not google_id: raise BadRequest("Invalid user info from Google")

    db_user = await storage.get_user_by_google_id(session, google_id)
    expires_at = utcnow() + timedelta(seconds=token.get('expires_in', 3600))

    if db_user:
        # Returning users only get fresh credentials; profile fields stay as first recorded.
        db_user.oauth_access_token = token.get('access_token')
        if token.get('refresh_token'):
            db_user.oauth_refresh_token = token.get('refresh_token')
        db_user.oauth_token_expiry = expires_at
        logger.info("Updated credentials for user %s", db_user.id)
    else:
        db_user = User(
            googleId=google_id, email=user_info.get('email') or "", displayName=user_info.get('name'),
            avatarUrl=user_info.get('picture'), oauth_access_token=token.get('access_token'),
            oauth_refresh_token=token.get('refresh_token'), oauth_token_expiry=expires_at
        )
    session.add(db_user)
    await session.commit()
    await session.refresh(db_user)
    return db_user

def login_user(request: Request, user: User) -> None:
    request.session[SESSION_USER_KEY] = user.id

def logout_user(request: Request) -> None:
    request.session.clear()

async def get_current_user(request: Request, session: AsyncSession = Depends(get_session)) -> User:
    user_id: Optional[int] = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        raise NotAuthenticated()

    user = await storage.get_user(session, user_id)
    if user is None:
        logger.warning("Session refers to missing user %s; clearing it", user_id)
        request.session.clear()
        raise NotAuthenticated()
    return user
