
import os

DATABASE_URL = os.getenv("DATABASE_URL")
MINIO_ENDPOINT = os.getenv("MINIO_ENDPOINT", "minio:9000")
MINIO_ACCESS_KEY = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
MINIO_SECRET_KEY = os.getenv("MINIO_SECRET_KEY", "minioadmin")
MINIO_BUCKET = os.getenv("MINIO_BUCKET", "designer")
MINIO_SECURE = os.getenv("MINIO_SECURE", "false").lower() in ("1", "true", "yes")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "86400"))
DOCUMENT_URL_TTL_SECONDS = int(os.getenv("DOCUMENT_URL_TTL_SECONDS", "600"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# widget reconciliation timing, in seconds
RECONCILE_SETTLE_DELAY = float(os.getenv("RECONCILE_SETTLE_DELAY", "0.5"))
RECONCILE_RETRY_DELAYS = tuple(
    float(part) for part in os.getenv("RECONCILE_RETRY_DELAYS", "0.5,1.0").split(",") if part.strip()
)
RECONCILE_VERIFY_DELAY = float(os.getenv("RECONCILE_VERIFY_DELAY", "0.2"))
