"""
streamhedge - THORChain stream swap detector and Kraken hedge executor.
"""

__version__ = "0.1.0"
