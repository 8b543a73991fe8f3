"""PurposeLog — personal task tracker API.

Users register with an avatar, log in with cookie-carried JWTs, and
manage their own tasks. Sessions are single-slot: every login or
refresh rotates the one refresh token a user may hold.
"""

__version__ = "0.1.0"
