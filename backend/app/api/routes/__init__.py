"""Route modules for the Excel Vault API."""
from . import auth, files, health

__all__ = ["auth", "files", "health"]
