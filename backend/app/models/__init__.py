"""SQLAlchemy models registered on the shared metadata."""
from .credential import Credential
from .stored_file import StoredFile

__all__ = ["Credential", "StoredFile"]
