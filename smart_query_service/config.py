import os
from dotenv import load_dotenv

load_dotenv()

# ---- Table store (DynamoDB) ----
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")

# Point at DynamoDB Local / LocalStack, e.g. "http://localhost:8001"
DYNAMODB_ENDPOINT_URL = os.getenv("DYNAMODB_ENDPOINT_URL", "")

# ---- Smart query ----
DEFAULT_SCAN_LIMIT = int(os.getenv("DEFAULT_SCAN_LIMIT", "100"))
SUPERLATIVE_DEFAULT_LIMIT = int(os.getenv("SUPERLATIVE_DEFAULT_LIMIT", "1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Used by diagnose.py to reach a running service
SERVICE_URL = os.getenv("SERVICE_URL", "http://localhost:8000")
