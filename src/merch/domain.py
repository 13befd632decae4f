"""Merch bounded context: print-on-demand orders and creator earnings.

Handles the order lifecycle of creator products produced by an external
print-fulfillment provider, reconciliation of the provider's lifecycle
callbacks, and the commission ledger each creator is paid out from.
"""

import structlog
from protean.domain import Domain

from merch.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

merch = Domain(name="merch")

logger = structlog.get_logger(__name__)
