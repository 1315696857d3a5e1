"""
Routing Policy Editor.

Graph model, mutation service, validator and compiler for telephony
routing policies (call flows).
"""

__version__ = "1.0.0"
