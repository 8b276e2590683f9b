"""Satoshi Daily: daily BTC price prediction game settlement engine."""

__version__ = "0.1.0"
