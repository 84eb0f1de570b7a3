from .app import create_app
from .signature import compute_signature, verify_signature

__all__ = ["compute_signature", "create_app", "verify_signature"]
