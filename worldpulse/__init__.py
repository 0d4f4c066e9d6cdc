"""
WorldPulse - event clustering and cross-domain correlation for news,
prediction-market and market feeds.
"""

__version__ = "0.1.0"
