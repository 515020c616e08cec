import os
from dotenv import load_dotenv

load_dotenv()

# Database (SQLite file holding users and test results)
DATABASE_PATH = os.getenv("DATABASE_PATH", "database.sqlite")

# JWT Configuration
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "your-refresh-secret-key-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Google sign-in: ID tokens must be issued for this client
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_TOKENINFO_URL = os.getenv("GOOGLE_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo")

# Auth rate limits: (max requests, window in seconds) per client IP
AUTH_RATE_LIMIT = (10, 15 * 60)
ACCOUNT_DELETE_RATE_LIMIT = (3, 15 * 60)

# Only enable behind a reverse proxy that sets X-Forwarded-For itself
TRUST_PROXY_HEADERS = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Where the results client submits to
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000/api")
