"""Outbound webhook delivery service.

Domain events published by the host application are fanned out as signed
HTTP callbacks to registered subscriber endpoints, with a persistent retry
queue behind them.
"""

__version__ = "0.1.0"
