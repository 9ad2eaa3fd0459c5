"""
Conference catalogue and ticket pricing.

- pricing_service.py: ordered pricing cascade (conference early bird, ticket
  early bird, late price, standard price)
- service.py: conference and ticket type lookups and creation
- router.py: public conference endpoint with current ticket prices
"""

from .router import router
from .service import ConferenceService
from .pricing_service import resolve_price, resolve_unit_price

__all__ = [
    "router",
    "ConferenceService",
    "resolve_price",
    "resolve_unit_price",
]
