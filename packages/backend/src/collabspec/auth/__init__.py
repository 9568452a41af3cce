"""Authentication and authorization.

Learn: Users authenticate with email/password and receive a pair of
JWTs — a short-lived access token and a longer-lived refresh token —
bound to one session id. Refreshing rotates the pair but keeps the
session id, so downstream systems can correlate a whole login.

Building blocks, leaf to root:
    password.PasswordHasher   bcrypt hashing
    jwt.TokenCodec            sign/verify both token kinds
    rate_limit.RateLimiter    per-client attempt window
    roles.RoleAuthorizer      role order + ownership checks
    sessions.SessionIssuer    session ids and token pairs
"""
