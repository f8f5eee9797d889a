"""
restcore: convention-enforcing REST resource façade
"""

__version__ = "0.2.0"
