"""Potter token-factory client"""
__version__ = "0.1.0"
