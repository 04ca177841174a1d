import argparse
import logging
import sys
import time

from county_booking import run
from county_booking.models import BookingMetadata

# --- Logging Setup ---

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool):
    """Configures logging to stderr with local time."""
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s]: %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    formatter.converter = time.localtime
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def parse_arguments(argv=None):
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(description="Check and book candidate appointment times at the election office.")
    parser.add_argument("--date", type=str, help="Date in YYYY-MM-DD format. Defaults to today.")
    parser.add_argument("--month", action="store_true", help="Print the month calendar for the date.")
    parser.add_argument("--book", type=str, help='Start time to book, e.g. "10:00 AM".')
    parser.add_argument("--name", type=str, default="", help="Name stored with the appointment.")
    parser.add_argument("--email", type=str, default="", help="Email stored with the appointment.")
    parser.add_argument("--notes", type=str, default="", help="Notes for the office.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args(argv)


def main():
    args = parse_arguments()
    setup_logging(args.verbose)
    metadata = BookingMetadata(name=args.name, email=args.email, notes=args.notes)
    sys.exit(run.run(date_arg=args.date, book=args.book, metadata=metadata, show_month=args.month))
