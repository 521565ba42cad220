"""
Scrollwise - browsing activity tracking, daily metrics and generated insights.
"""

__version__ = "1.0.0"
