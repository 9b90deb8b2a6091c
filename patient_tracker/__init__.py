"""
Ward Scan Tracker Backend
Patient location tracking from ward QR scans with PostgreSQL persistence.
NOTE: Package initialization for scan reconciliation and patient notification services
"""

__version__ = "1.0.0"
__author__ = "Ward Scan Tracker Team"
__description__ = "Hospital patient QR scan tracking system with FastAPI and PostgreSQL"
