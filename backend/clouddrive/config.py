import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent   # backend/clouddrive -> backend
STORAGE_DIR = Path(os.getenv("CLOUDDRIVE_STORAGE_DIR", BASE_DIR / "storage"))
DB_PATH = Path(os.getenv("CLOUDDRIVE_DB_PATH", STORAGE_DIR / "clouddrive.db"))

SECRET_KEY = os.getenv("CLOUDDRIVE_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM = os.getenv("CLOUDDRIVE_JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("CLOUDDRIVE_TOKEN_EXPIRE_MINUTES", 60 * 24))

# bytes of entropy behind each public share link
PUBLIC_LINK_BYTES = int(os.getenv("CLOUDDRIVE_PUBLIC_LINK_BYTES", 32))

LOG_LEVEL = os.getenv("CLOUDDRIVE_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CLOUDDRIVE_CORS_ORIGINS", "http://127.0.0.1:5500,http://localhost:5500"
    ).split(",")
    if o.strip()
]

# free tier quota, premium is unlimited
FREE_TIER_QUOTA = int(os.getenv("CLOUDDRIVE_FREE_TIER_QUOTA", 5 * 1024 ** 3))
