# backend/services/folder_paths.py
from datetime import datetime, timezone


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)

def derive_folder_path(moment: datetime, email: str) -> str:
    """receipts/<local part of email>/<UTC date>, e.g. receipts/jane/2024-03-05."""
    local_part, _, domain = email.partition("@")
    if not local_part or not domain or "@" in domain:
        raise ValueError(f"Cannot derive a folder path from email {email!r}")
    return f"receipts/{local_part}/{_as_utc(moment).date().isoformat()}"

def make_file_name(moment: datetime) -> str:
    # ISO timestamp with ':' and '.' swapped for '-', e.g. receipt-2024-03-05T10-20-30-123Z.jpg
    moment = _as_utc(moment)
    return f"receipt-{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z.jpg"
