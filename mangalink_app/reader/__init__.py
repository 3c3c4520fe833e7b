"""
Reader state: models, chapter loading, progress tracking and scheduling.

Only the models are re-exported here; loader, progress and scheduler are
imported by module path (they depend on matching, which depends on the
models).
"""

from .models import ReadingProgress, ReadingSession, SourceInstance, Work, clamp

__all__ = ['ReadingProgress', 'ReadingSession', 'SourceInstance', 'Work', 'clamp']
