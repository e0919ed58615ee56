"""
FILE DESCRIPTION: Foundational module for global configuration and logging.
KEY FUNCTIONS/CLASSES: setup_logger, CompanyFormatter, module-level settings
"""

import logging
import sys
import os
from datetime import datetime
from pathlib import Path
from dotenv import load_dotenv

# === CONFIGURATION SECTION ===

# Load .env from the project root before reading any overrides
load_dotenv(Path(__file__).resolve().parents[1] / '.env')

# Canonical data directory (dataset output, SQLite frontier)
DATA_DIR = Path(os.getenv("HARVESTER_DATA_DIR", Path(__file__).resolve().parents[1] / 'data'))

# Default location of the crawl input document
INPUT_PATH = os.getenv("HARVESTER_INPUT", "INPUT.json")

# Network timeout for JSON downloads (seconds)
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", 30))

# Playwright navigation timeout (milliseconds)
NAVIGATION_TIMEOUT_MS = 100000

# Randomized pause between a successful render and extraction (seconds)
SETTLE_DELAY_RANGE = (1.0, 6.0)

# Retry backoff (seconds): base * 2 ** (retry_count - 1), capped
BACKOFF_BASE_SECONDS = float(os.getenv("BACKOFF_BASE_SECONDS", 2))
BACKOFF_MAX_SECONDS = float(os.getenv("BACKOFF_MAX_SECONDS", 60))

# Crawl defaults when the input omits them
DEFAULT_MAX_REQUEST_RETRIES = 3
DEFAULT_MAX_REQUESTS_PER_CRAWL = 100

# Proxy endpoint used when the input asks for the managed proxy
MANAGED_PROXY_URL = os.getenv("MANAGED_PROXY_URL", "")

# Slow-motion delay for headed live-view sessions (milliseconds)
LIVE_VIEW_SLOW_MO = 250

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"

# Rotating pool; one is drawn for every render attempt
USER_AGENTS = [
    DEFAULT_USER_AGENT,
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
]

LOG_FILE = os.getenv("LOG_FILE") or None
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# === LOGGING SECTION ===

class CompanyFormatter(logging.Formatter):
    """
    FLOW: Receives a log record -> Extracts timestamp -> Formats according to company standard
    (e.g., [ Tue Jan 06 05:32:41 AM UTC 2026 ]) -> Prepends level and context -> Returns final string.
    """
    def format(self, record):
        dt = datetime.fromtimestamp(record.created)
        timestamp = dt.strftime("%a %b %d %I:%M:%S %p UTC %Y")
        context = getattr(record, 'context', 'root')
        message = f"[ {timestamp} ] : {record.levelname} : {context} : {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message

def setup_logger(name="harvester", log_file=None, level=logging.INFO):
    """
    FLOW: Initializes/Retrieves logger -> Checks for existing handlers to prevent duplicates ->
    Sets propagation for child loggers -> Attaches Console and optional File handlers with CompanyFormatter.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if name != "harvester":
        logger.propagate = True
        setup_logger("harvester", log_file=log_file, level=level)
        return logger

    formatter = CompanyFormatter()

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # File handler is attached at most once, even when called again from the CLI
    if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

# Global logger instance
logger = setup_logger(log_file=LOG_FILE, level=getattr(logging, LOG_LEVEL, logging.INFO))
