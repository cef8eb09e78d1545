# backend/config.py
import os
from dotenv import load_dotenv

load_dotenv()

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
    raise ValueError("Google OAuth credentials are not set in .env file.")

SESSION_SECRET_KEY = os.getenv("SESSION_SECRET")
if not SESSION_SECRET_KEY:
    raise ValueError("SESSION_SECRET is not set in .env file!")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./receiptvault.db")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:5000/auth/callback")

# Empty means the client is served from the same origin as the API.
CLIENT_URL = os.getenv("CLIENT_URL", "").rstrip("/")

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
