"""Per-user notification preferences and quiet hours."""

from src.preferences.resolver import PreferenceResolver, Resolution, in_quiet_hours
from src.preferences.store import PreferenceStore

__all__ = [
    "PreferenceResolver",
    "PreferenceStore",
    "Resolution",
    "in_quiet_hours",
]
