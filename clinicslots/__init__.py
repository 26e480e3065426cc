"""
clinicslots - appointment availability and booking validation for clinics.
"""

__version__ = "0.1.0"
