"""
tutorbooking - appointment slots and booking validation for a tutoring service.
"""

__version__ = "0.1.0"
