"""
audit-box: review what a sandboxed command wrote, then keep or discard it.
"""

__version__ = "0.1.0"
