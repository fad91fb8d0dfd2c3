"""
Venue registry: maps each swap venue to its route resolver.
"""

from app.liquidation.logging_config import setup_logger
from app.liquidation.models import Venue
from app.liquidation.venues.curve_venue import CurveRouteResolver
from app.liquidation.venues.odos_venue import OdosRouteResolver
from app.liquidation.venues.uniswap_v3_venue import UniswapV3RouteResolver

logger = setup_logger()

VENUE_REGISTRY = {
    Venue.ODOS: {
        "resolver_class": OdosRouteResolver,
    },
    Venue.CURVE: {
        "resolver_class": CurveRouteResolver,
    },
    Venue.UNISWAP_V3: {
        "resolver_class": UniswapV3RouteResolver,
    },
}


def get_resolver_for_venue(venue):
    """Return the resolver class for a venue or venue name."""
    entry = VENUE_REGISTRY.get(Venue(venue))
    if not entry:
        raise ValueError(f"Unknown venue: {venue}")
    return entry["resolver_class"]


def build_resolver(venue, config, ledger, approver=None):
    resolver_class = get_resolver_for_venue(venue)
    logger.info("Building %s for venue %s", resolver_class.__name__, Venue(venue).value)
    return resolver_class(config, ledger, approver)
