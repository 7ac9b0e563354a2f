"""
SX Bet iceberg market-making monitor.
"""

__version__ = "0.1.0"
