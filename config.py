import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "petzify")

# Blob store (any S3-compatible endpoint, e.g. Cloudflare R2)
BLOB_ENDPOINT_URL = os.getenv("BLOB_ENDPOINT_URL")
BLOB_ACCESS_KEY_ID = os.getenv("BLOB_ACCESS_KEY_ID")
BLOB_SECRET_ACCESS_KEY = os.getenv("BLOB_SECRET_ACCESS_KEY")
BLOB_BUCKET_NAME = os.getenv("BLOB_BUCKET_NAME", "petzify")
# Public base URL that serves the bucket; document fields store {BLOB_PUBLIC_URL}/{key}
BLOB_PUBLIC_URL = os.getenv("BLOB_PUBLIC_URL", "").rstrip("/")

# SMTP relay
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Petzify <noreply@petzify.com>")
# Receives a copy of new grooming bookings and orders
BUSINESS_EMAIL = os.getenv("BUSINESS_EMAIL")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
# Lifetime of an emailed login code
OTP_INTERVAL_SECONDS = int(os.getenv("OTP_INTERVAL_SECONDS", "600"))
