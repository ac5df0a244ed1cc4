# altosync/utils.py
"""Shared utilities such as logging, retry decorators and small text helpers."""
import os
import re
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    handlers = [logging.StreamHandler()]
    log_file = os.getenv("LOG_FILE")
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, level, logging.INFO),
        handlers=handlers,
    )
    return logging.getLogger(name)

logger = get_logger("alto-sync")


def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            mtries, mdelay = tries, delay
            while mtries > 1:
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("Retryable error: %s, retrying in %s sec", e, mdelay)
                    time.sleep(mdelay)
                    mtries -= 1
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry


def mask(secret, keep=6):
    """Show only the first few characters of a token or password."""
    if not secret:
        return ""
    return secret[:keep] + "..."


def slugify(value: str) -> str:
    value = re.sub(r"[^a-z0-9-]", "-", (value or "").strip().lower())
    return re.sub(r"-+", "-", value).strip("-")


def to_int(value, default=0) -> int:
    """Whole part of a loosely formatted number: ``"2.5"`` is 2, ``"1,250 sq ft"`` is 1250."""
    whole = str(value or "").strip().split(".")[0]
    digits = re.sub(r"[^\d]", "", whole)
    if not digits:
        return default
    return -int(digits) if whole.startswith("-") else int(digits)


def to_float(value, default=0.0) -> float:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default
