import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, List

from county_booking import config

logger = logging.getLogger(__name__)


def ensure_data_dir():
    """Ensures the data directory exists."""
    if not os.path.exists(config.DATA_DIR):
        os.makedirs(config.DATA_DIR)


def load_restrictions_cache() -> List[Dict]:
    """Loads the last successfully fetched restriction documents, or [] when there is no usable cache."""
    if not os.path.exists(config.RESTRICTIONS_CACHE_FILE):
        logger.info("No restrictions cache found.")
        return []
    try:
        with open(config.RESTRICTIONS_CACHE_FILE, "r") as f:
            data: Dict = json.load(f)
        if "last_updated" in data and isinstance(data.get("restrictions"), list):
            logger.info(f"Loaded restrictions from cache, last updated: {data['last_updated']}")
            return data["restrictions"]
        logger.warning("Restrictions cache has unexpected format. Ignoring it.")
        return []
    except (json.JSONDecodeError, IOError):
        logger.warning("Failed to read restrictions cache. Ignoring it.")
        return []


def save_restrictions_cache(documents: List[Dict]):
    """Saves restriction documents to the cache file with a timestamp."""
    ensure_data_dir()
    try:
        data = {
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "restrictions": documents,
        }
        with open(config.RESTRICTIONS_CACHE_FILE, "w") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Saved restrictions to {config.RESTRICTIONS_CACHE_FILE} on {data['last_updated']}")
    except IOError as e:
        logger.error(f"Failed to save restrictions cache: {e}")
