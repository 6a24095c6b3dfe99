"""docker-logentries: ship container logs, stats and events to Logentries.

Multiplexes independently-lived Docker sources into a single TCP or TLS
connection, tagging every line with a routing token chosen per channel and
per container image.  The connection heals itself on failure and is torn
down once every source has ended.
"""

__version__ = "0.3.0"
__description__ = "Forward Docker logs, stats and events to Logentries"

from docker_logentries.config import ConfigurationError, ShipperSettings
from docker_logentries.core.shipper import Shipper
from docker_logentries.routing.router import RecordRouter

__all__ = ["ConfigurationError", "RecordRouter", "Shipper", "ShipperSettings", "__version__"]
