"""
Season Sell-Through Tracker

Captures per-season baseline stock for tagged catalog products and reports
how much of it has sold.
"""

__version__ = "1.0.0"
