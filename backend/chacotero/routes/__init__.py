"""
Chacotero Calls - API Routes
"""
from . import calls

__all__ = ["calls"]
