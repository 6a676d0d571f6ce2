import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookings.db")

# Firebase Configuration (ID tokens issued to customers, providers and admins)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Stripe Configuration
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
# Signing secret of the webhook endpoint ("whsec_..."); webhook returns 501 while unset
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# Cancellation refund policy
FULL_REFUND_WINDOW_HOURS = float(os.getenv("FULL_REFUND_WINDOW_HOURS", "24"))
LATE_CANCELLATION_REFUND_PERCENT = int(os.getenv("LATE_CANCELLATION_REFUND_PERCENT", "50"))

# Webhook event log / reconciliation
WEBHOOK_PAYLOAD_SNAPSHOT_LIMIT = int(os.getenv("WEBHOOK_PAYLOAD_SNAPSHOT_LIMIT", "4000"))
WEBHOOK_STALE_AFTER_MINUTES = int(os.getenv("WEBHOOK_STALE_AFTER_MINUTES", "15"))
WEBHOOK_MAX_REDRIVE_BATCH = int(os.getenv("WEBHOOK_MAX_REDRIVE_BATCH", "50"))
# Events that failed this many times are left for manual re-drive
WEBHOOK_MAX_ATTEMPTS = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "5"))
# When true, a charge.refunded without a matching payment is answered with 500 so Stripe redelivers
RETRY_REFUND_WITHOUT_PAYMENT = os.getenv("RETRY_REFUND_WITHOUT_PAYMENT", "false").lower() == "true"

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CleanMarket <bookings@cleanmarket.app>")
