"""Storage abstractions for Switchboard."""

from .models import SessionRecord
from .sessions import SessionStore, atomic_write_text

__all__ = ["SessionRecord", "SessionStore", "atomic_write_text"]
