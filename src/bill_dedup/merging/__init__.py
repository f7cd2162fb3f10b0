"""
Merge module.

Combines a matched PDF/email record pair into one ``combined`` record.
"""

from .resolver import MergeResolver

__all__ = ["MergeResolver"]
