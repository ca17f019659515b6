import uuid
from pathlib import Path


def generate_query_id() -> str:
    """Generate a new opaque id for an exchange."""
    return uuid.uuid4().hex


def get_app_dir() -> Path:
    """Return the chatwire configuration directory under the user's home."""
    return Path.home() / '.chatwire'
