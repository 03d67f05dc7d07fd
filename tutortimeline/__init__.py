"""
Availability and booking timeline engine for a tutoring marketplace.
"""

__version__ = "0.1.0"
