import logging
import os

logger = logging.getLogger(__name__)

# --- File Paths ---
DATA_DIR = os.environ.get("BOOKING_DATA_DIR", "data")
RESTRICTIONS_CACHE_FILE = os.path.join(DATA_DIR, "restrictions.json")

# --- Backend API ---
API_BASE_URL = os.environ.get("BOOKING_API_BASE_URL")
API_TOKEN = os.environ.get("BOOKING_API_TOKEN")
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("REQUEST_TIMEOUT_SECONDS", "240"))

APPOINTMENTS_ENDPOINT = "/api/appointments"
RESTRICTIONS_ENDPOINT = "/api/appointment-times"
CALENDAR_BUSY_ENDPOINT = "/api/calendar/busy"

# --- Office schedule ---
# 12-hour clock strings, parsed where they are used.
OFFICE_OPEN = os.environ.get("OFFICE_OPEN", "9:00 AM")
OFFICE_CLOSE = os.environ.get("OFFICE_CLOSE", "5:00 PM")
SLOT_GRANULARITY_MINUTES = int(os.environ.get("SLOT_GRANULARITY_MINUTES", "15"))
APPOINTMENT_DURATION_MINUTES = int(os.environ.get("APPOINTMENT_DURATION_MINUTES", "45"))
SCHEDULED_STATUS = "scheduled"

# --- Appointment defaults ---
APPOINTMENT_TYPE = "Candidate Pre-Qualifying / Qualifying"
APPOINTMENT_LOCATION = "Candidate Conference Room"
APPOINTMENT_ADDRESS = os.environ.get(
    "APPOINTMENT_ADDRESS", "96135 Nassau Place, Suite 3, Yulee, FL 32097"
)
APPOINTMENT_TIME_ZONE = "Eastern Time - US & Canada"

if not API_BASE_URL:
    logger.warning("BOOKING_API_BASE_URL not set. Backend calls will fail until it is configured.")
