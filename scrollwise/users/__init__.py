"""Scrollwise users - the profile fields the tracking pipeline reads and writes."""

from scrollwise.users.repository import PresenceSnapshot, UserProfile, UserRepository

__all__ = ["PresenceSnapshot", "UserProfile", "UserRepository"]
