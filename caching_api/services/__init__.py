"""
Services Module

Cache strategies and the version-tracking services behind optimistic
locking.
"""
