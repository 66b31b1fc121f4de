from decouple import config, Csv

ENVIRONMENT = config("ENVIRONMENT", default="development")
LOG_LEVEL = config("LOG_LEVEL", default="INFO")

DATABASE_URL = config("DATABASE_URL", default="sqlite:///./vidhanto.db")

# Tokens
JWT_SECRET = config("JWT_SECRET", default="change-me-access-secret")
JWT_REFRESH_SECRET = config("JWT_REFRESH_SECRET", default="change-me-refresh-secret")
JWT_ALGORITHM = config("JWT_ALGORITHM", default="HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 24 * 7, cast=int)
REFRESH_TOKEN_EXPIRE_MINUTES = config("REFRESH_TOKEN_EXPIRE_MINUTES", default=60 * 24 * 30, cast=int)
EMAIL_VERIFICATION_EXPIRE_HOURS = config("EMAIL_VERIFICATION_EXPIRE_HOURS", default=24, cast=int)
PASSWORD_RESET_EXPIRE_MINUTES = config("PASSWORD_RESET_EXPIRE_MINUTES", default=10, cast=int)

FRONTEND_URL = config("FRONTEND_URL", default="http://localhost:3000")
ADMIN_URL = config("ADMIN_URL", default="http://localhost:3001")
EXTRA_CORS_ORIGINS = config("EXTRA_CORS_ORIGINS", default="", cast=Csv())

# Razorpay
RAZORPAY_KEY_ID = config("RAZORPAY_KEY_ID", default="")
RAZORPAY_KEY_SECRET = config("RAZORPAY_KEY_SECRET", default="")
RAZORPAY_API_URL = config("RAZORPAY_API_URL", default="https://api.razorpay.com/v1")
PAYMENT_TIMEOUT_SECONDS = config("PAYMENT_TIMEOUT_SECONDS", default=30, cast=int)

# Gemini, through its OpenAI-compatible endpoint
GEMINI_API_KEY = config("GEMINI_API_KEY", default="")
GEMINI_MODEL = config("GEMINI_MODEL", default="gemini-2.0-flash-lite")
GEMINI_BASE_URL = config(
    "GEMINI_BASE_URL",
    default="https://generativelanguage.googleapis.com/v1beta/openai/",
)
AI_RATE_LIMIT_PER_MINUTE = config("AI_RATE_LIMIT_PER_MINUTE", default=20, cast=int)

# SMTP
SMTP_HOST = config("SMTP_HOST", default="smtp.gmail.com")
SMTP_PORT = config("SMTP_PORT", default=587, cast=int)
SMTP_USER = config("SMTP_USER", default="")
SMTP_PASSWORD = config("SMTP_PASSWORD", default="")
SMTP_USE_TLS = config("SMTP_USE_TLS", default=True, cast=bool)
EMAIL_FROM = config("EMAIL_FROM", default="Vidhanto <noreply@vidhanto.com>")

# Storage
AWS_ACCESS_KEY_ID = config("AWS_ACCESS_KEY_ID", default="")
AWS_SECRET_ACCESS_KEY = config("AWS_SECRET_ACCESS_KEY", default="")
AWS_REGION = config("AWS_REGION", default="ap-south-1")
S3_BUCKET = config("S3_BUCKET", default="")
UPLOAD_DIR = config("UPLOAD_DIR", default="uploads")
MAX_UPLOAD_BYTES = config("MAX_UPLOAD_BYTES", default=5 * 1024 * 1024, cast=int)

MEETING_BASE_URL = config("MEETING_BASE_URL", default="https://meet.vidhanto.com")
# Lawyer availability windows are wall-clock times at this offset from UTC (IST).
AVAILABILITY_UTC_OFFSET_MINUTES = config("AVAILABILITY_UTC_OFFSET_MINUTES", default=330, cast=int)


def is_production() -> bool:
    return ENVIRONMENT == "production"


def cors_origins() -> list:
    origins = [FRONTEND_URL, ADMIN_URL]
    origins.extend(o for o in EXTRA_CORS_ORIGINS if o)
    return origins
