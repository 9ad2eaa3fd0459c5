"""
User accounts for group leaders.

- service.py: registration, email verification, passwords and login
- linker_service.py: links bookings to accounts and starts verification
- router.py: /user endpoints
"""

from .router import router
from .service import AccountService
from .linker_service import link_or_create_account, LinkResult

__all__ = [
    "router",
    "AccountService",
    "link_or_create_account",
    "LinkResult",
]
