"""
mentorgraph - matching, relevance ranking and live graph merge for
short-lived mentorship asks and offers.
"""

__version__ = "0.1.0"
