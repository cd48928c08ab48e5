import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")

# --- Path Configuration ---
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")
RESULTS_FILENAME_BASE = os.getenv("RESULTS_FILENAME", "bulk_stock_update")
SAVE_JSON_OUTPUT = os.getenv("SAVE_JSON_OUTPUT", "true").lower() in ("1", "true", "yes")
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
LOG_FILENAME = "app.log"

# --- Backend (Supabase / PostgREST) ---
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Access token of the signed-in user; identifies the caller's CEDI.
SUPABASE_ACCESS_TOKEN = os.getenv("SUPABASE_ACCESS_TOKEN", "")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "15"))

# --- Webhook ---
WEBHOOK_URL = os.getenv("WEBHOOK_URL")

# --- Shared Business Logic ---
REQUIRED_COLUMNS = ["sku", "new_stock", "movement_type"]

# Allowed values for movement_type, in the order they are shown to users.
MOVEMENT_TYPES = ["IN", "OUT", "ADJUSTMENT"]

# Tag stored on every inventory movement created by a CSV batch.
REFERENCE_TYPE = "CSV_BULK_UPDATE"

# Column order of the results report.
RESULT_COLUMNS = [
    "row",
    "sku",
    "status",
    "message",
    "old_stock",
    "new_stock",
]
