"""CollabSpec — authentication backend for distributed spec teams.

Registration, login, bearer-token rotation, role-based access and
brute-force throttling for the CollabSpec collaboration platform.
"""

__version__ = "0.1.0"
