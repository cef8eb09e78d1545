# backend/main.py
import logging
from contextlib import asynccontextmanager
from typing import List, Optional
from fastapi import FastAPI, Depends, Request, UploadFile, File, Query
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware
from starlette.middleware.cors import CORSMiddleware
from authlib.integrations.base_client import OAuthError
from pydantic import BaseModel

import storage
from config import CLIENT_URL, SESSION_SECRET_KEY, MAX_UPLOAD_BYTES, LOG_LEVEL
from database import create_db_and_tables, get_session
from errors import ReceiptVaultError, BadRequest, PayloadTooLarge, UpstreamFailure
from models import User, Receipt, UserPublic, Gallery, utcnow
from auth import (
    build_authorization_url, fetch_token, fetch_user_info, has_required_user_info,
    find_or_create_user, get_current_user, login_user, logout_user,
)
from services import receipt_service, gallery_service

logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s:     %(name)s - %(message)s")
logger = logging.getLogger("receiptvault")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and creating database tables...")
    await create_db_and_tables()
    logger.info("Startup complete.")
    yield

app = FastAPI(title="ReceiptVault", lifespan=lifespan)

if CLIENT_URL:
    app.add_middleware(
        CORSMiddleware, allow_origins=[CLIENT_URL], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET_KEY)

@app.exception_handler(ReceiptVaultError)
async def receiptvault_error_handler(request: Request, exc: ReceiptVaultError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

# --- Pydantic Models ---
class AuthCodeRequest(BaseModel): code: Optional[str] = None
class AuthUrlResponse(BaseModel): authUrl: str
class LoginResponse(BaseModel): user: UserPublic
class MessageResponse(BaseModel): message: str

def login_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(url=f"{CLIENT_URL}/login?error={reason}")

def oauth_error_reason(error: Exception) -> str:
    message = str(error).lower()
    if "refresh token" in message:
        return "reauth_needed"
    if "invalid_grant" in message:
        return "code_expired"
    return "auth_failed"

# --- Auth Routes ---
@app.get("/api/auth/google", response_model=AuthUrlResponse)
async def google_auth_url():
    try:
        return {"authUrl": await build_authorization_url()}
    except Exception as e:
        logger.error("Could not build the Google authorization URL: %r", e)
        raise UpstreamFailure("Failed to start Google sign-in")

@app.get("/auth/callback", name="auth_callback")
async def auth_callback(request: Request, code: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    if not code:
        logger.warning("OAuth callback without an authorization code")
        return login_redirect("no_code")
    try:
        token = await fetch_token(code)
        if not token or not token.get("access_token"):
            logger.error("Google returned no access token")
            return login_redirect("token_failed")

        user_info = await fetch_user_info(token)
        if not has_required_user_info(user_info):
            logger.error("Incomplete user info from Google")
            return login_redirect("invalid_user")

        try:
            db_user = await find_or_create_user(session, user_info, token)
        except SQLAlchemyError as e:
            logger.error("Failed to create or update user %s: %r", user_info.get("email"), e)
            return login_redirect("user_creation_failed")

        if "session" not in request.scope:
            logger.error("Session middleware is not installed")
            return login_redirect("session_error")

        login_user(request, db_user)
        logger.info("User %s logged in", db_user.id)
        return RedirectResponse(url=f"{CLIENT_URL}/")
    except OAuthError as e:
        reason = oauth_error_reason(e)
        logger.error("OAuth callback error (%s): %s", reason, e)
        return login_redirect(reason)
    except Exception as e:
        logger.exception("OAuth callback error: %r", e)
        return login_redirect("auth_failed")

@app.post("/api/auth/callback", response_model=LoginResponse)
async def auth_callback_api(payload: AuthCodeRequest, request: Request, session: AsyncSession = Depends(get_session)):
    if not payload.code:
        raise BadRequest("Authorization code is required")
    try:
        token = await fetch_token(payload.code)
        user_info = await fetch_user_info(token)
    except Exception as e:
        logger.error("Auth callback error: %r", e)
        raise UpstreamFailure("Authentication failed")
    if not has_required_user_info(user_info):
        raise BadRequest("Failed to get user information")

    try:
        db_user = await find_or_create_user(session, user_info, token)
    except SQLAlchemyError as e:
        logger.error("Failed to create or update user %s: %r", user_info.get("email"), e)
        raise UpstreamFailure("Authentication failed")
    login_user(request, db_user)
    return {"user": UserPublic.from_user(db_user)}

@app.get("/api/auth/user", response_model=UserPublic)
async def get_auth_user(current_user: User = Depends(get_current_user)):
    return UserPublic.from_user(current_user)

@app.post("/api/auth/logout", response_model=MessageResponse)
async def logout(request: Request):
    logout_user(request)
    return {"message": "Logged out successfully"}

# --- Receipt Routes ---
@app.get("/api/receipts", response_model=List[Receipt])
async def list_receipts(current_user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    return await storage.get_receipts_by_user_id(session, current_user.id)

@app.get("/api/receipts/recent", response_model=List[Receipt])
async def recent_receipts(
    limit: int = storage.DEFAULT_RECENT_LIMIT,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if limit < 1:
        limit = storage.DEFAULT_RECENT_LIMIT
    return await storage.get_recent_receipts(session, current_user.id, limit)

@app.get("/api/receipts/gallery", response_model=Gallery)
async def receipt_gallery(
    search: Optional[str] = None,
    date_range: str = Query("7days", alias="range"),
    sort: str = "newest",
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if date_range not in gallery_service.DATE_RANGES or sort not in gallery_service.SORT_ORDERS:
        raise BadRequest("Unknown date range or sort order")
    now = utcnow()
    start = gallery_service.range_start(date_range, now)
    if start is None:
        receipts = await storage.get_receipts_by_user_id(session, current_user.id)
    else:
        receipts = await storage.get_receipts_by_date_range(session, current_user.id, start, now)
    receipts = gallery_service.sort_receipts(gallery_service.filter_receipts(receipts, search), sort)
    groups = gallery_service.group_by_day(receipts, now.date())
    return {"count": len(receipts), "groups": groups}

@app.post("/api/receipts/upload", response_model=Receipt)
async def upload_receipt(
    receipt: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    if receipt is None:
        raise BadRequest("No file uploaded")
    data = await receipt.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise PayloadTooLarge()
    try:
        return await receipt_service.upload_receipt(session, current_user, data, receipt.filename or "receipt.jpg")
    except UpstreamFailure as e:
        logger.error("Upload failed for user %s: %s", current_user.id, e)
        raise UpstreamFailure("Failed to upload receipt")

@app.get("/api/receipts/{receipt_id}", response_model=Receipt)
async def get_receipt(receipt_id: int, current_user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    return await storage.get_owned_receipt(session, receipt_id, current_user.id)

@app.delete("/api/receipts/{receipt_id}", response_model=MessageResponse)
async def delete_receipt(receipt_id: int, current_user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    await receipt_service.delete_receipt(session, current_user, receipt_id)
    return {"message": "Receipt deleted successfully"}

@app.get("/")
async def read_root():
    return {"message": "ReceiptVault backend is running!"}
