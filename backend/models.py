# backend/models.py
from typing import Optional
from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp. Datetime columns are plain DateTime so naive values are stored as is."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    googleId: str = Field(unique=True, index=True)
    email: str = Field(unique=True)
    displayName: Optional[str] = Field(default=None)
    avatarUrl: Optional[str] = Field(default=None, max_length=512)
    oauth_access_token: Optional[str] = Field(default=None, max_length=2048)
    oauth_refresh_token: Optional[str] = Field(default=None, max_length=2048)
    oauth_token_expiry: Optional[datetime] = Field(default=None, sa_type=DateTime)
    createdAt: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Receipt(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    userId: int = Field(foreign_key="user.id", index=True)
    fileName: str
    originalName: str
    googleDriveId: str
    driveUrl: str
    thumbnailUrl: Optional[str] = Field(default=None)
    fileSize: int
    mimeType: str
    uploadDate: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    folderPath: str


class UserPublic(SQLModel):
    id: int
    email: str
    name: Optional[str] = None
    profilePicture: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, email=user.email, name=user.displayName, profilePicture=user.avatarUrl)


class ReceiptGroup(SQLModel):
    label: str
    receipts: list[Receipt]


class Gallery(SQLModel):
    count: int
    groups: list[ReceiptGroup]
