"""
Indicator Engine

Periodic business indicators derived from orders, products, search
performance and web analytics.
"""

__version__ = "1.0.0"
