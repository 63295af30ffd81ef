# log.py

import logging
import time

# --- Logging Setup ---
logger = logging.getLogger("ReqChain")
if not logger.hasHandlers():
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(asctime)sZ - %(levelname)s - %(name)s - %(message)s')
    formatter.converter = time.gmtime # UTC timestamps
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
logger.setLevel(logging.INFO)
logger.propagate = False # Prevent duplicate logs if root logger is configured

SENSITIVE_HEADERS = ('authorization', 'cookie', 'set-cookie', 'proxy-authorization')


def configure_logging(debug: bool):
    """Configures the logger level based on the debug flag."""
    log_level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(log_level)
    # Also configure handlers attached to our logger
    for handler in logger.handlers:
        handler.setLevel(log_level)
    logger.debug(f"ReqChain logging level set to {logging.getLevelName(log_level)}")


def mask_headers(headers):
    """Returns a copy of the header map with credential-bearing values masked for debug output."""
    return {k: ('********' if isinstance(v, str) and k.lower() in SENSITIVE_HEADERS and v else v) for k, v in headers.items()}


def preview(value, limit: int = 100) -> str:
    text = value if isinstance(value, str) else repr(value)
    return f"{text[:limit]}{'...' if len(text) > limit else ''}"
