"""
Chacotero Calls - radio call separation and similarity deduplication
"""
__version__ = "1.0.0"
