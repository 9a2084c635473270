"""Platform links, the platform API client and the authenticated call proxy.

``links`` and ``proxy`` depend on the session manager, which itself imports
the link models from here; import those two modules directly.
"""

from .models import LinkStatus, PlatformAuthResult, PlatformLink
from .client import PlatformClient

__all__ = [
    "LinkStatus",
    "PlatformAuthResult",
    "PlatformClient",
    "PlatformLink",
]
