# harvest_tracker/__init__.py
"""
Field harvest capture core: GPS fix -> validated record -> ledger ack ->
batch id -> verification link / QR.
"""

__version__ = "0.1.0"
