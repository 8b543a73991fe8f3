"""Authentication: password hashing, JWT issuance, cookie transport.

Users → username/email + password → access/refresh tokens in HttpOnly
cookies. The refresh token is single-slot and rotated on every use; the
access token is verified statelessly on each protected request.
"""
