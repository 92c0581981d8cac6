"""
Cardlink Profile Engagement Core

Public card slugs, Google account linking, engagement tracking and
analytics for digital business cards.
"""

__version__ = "1.0.0"
