"""Stable identifiers derived from URLs."""
import hashlib

ID_LENGTH = 16


def generate_id(url: str) -> str:
    """Return the first 16 hex characters of the SHA-1 digest of `url`.

    The same URL always maps to the same id, so ids can name cache files
    and output directories across runs.
    """
    return hashlib.sha1(url.encode("utf-8")).hexdigest()[:ID_LENGTH]
