"""Application configuration and settings."""
import os
from dotenv import load_dotenv

# Load environment variables from .env (if present)
load_dotenv()

# Database configuration
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./policies.db")

# Optional second store for non-primary rule types (e.g. grouping rules)
GROUPING_DATABASE_URL = os.getenv("GROUPING_DATABASE_URL") or None

# Rule storage
RULE_TABLE_NAME = os.getenv("RULE_TABLE_NAME", "casbin_rule")
PRIMARY_TYPE_MARKER = os.getenv("PRIMARY_TYPE_MARKER", "p")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")

# Management API key, checked by rule_adapter.core.security
ADMIN_API_KEY = os.environ.get("ADMIN_API_KEY")
