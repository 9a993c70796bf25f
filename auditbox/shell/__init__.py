"""
Shell package for reviewing overlay changes in the terminal.
"""

from .reviewer import Reviewer

__all__ = ['Reviewer']
