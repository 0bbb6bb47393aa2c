"""authcore - username/password login with signed, expiring access tokens.

Pieces:
- Credential store + password hasher (passlib pbkdf2_sha256)
- Token issuer (JWT, HS256, fixed TTL)
- Guard in front of every protected route
- Client-side session manager that caches the issued token

The server keeps no session table: a token is valid purely by signature and expiry.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
