"""API route handlers."""

from .bulk import router as bulk_router
from .stats import router as stats_router
from .weights import router as weights_router
from .export import router as export_router
from .listings import router as listings_router
from .matching import router as matching_router
from .preferences import router as preferences_router
