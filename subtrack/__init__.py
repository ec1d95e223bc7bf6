"""
Subtrack - Source Package

A single-page tracker for recurring subscription spend.

DESIGN PRINCIPLES:
1. The live query owns the list; nothing is mutated locally
2. Every write is an explicit user action
3. Failures surface as one transient message, never a crash
4. External services sit behind swappable interfaces
"""

__version__ = "1.0.0"
__author__ = "Subtrack Team"
