"""
VoxPay transfer orchestration engine.

Drives a conversational money transfer from the first request through
source-account and recipient disambiguation to PIN-confirmed execution on a
double-entry ledger.
"""

__version__ = "0.1.0"
