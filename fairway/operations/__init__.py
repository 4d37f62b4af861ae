"""
Setup and ingest operations for outings, rounds and series.
"""

from .outing_operations import OutingOperations
from .series_operations import SeriesOperations

__all__ = ['OutingOperations', 'SeriesOperations']
