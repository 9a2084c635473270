"""Identity records, identity mapping and password accounts."""

from .accounts import AccountStore
from .identities import IdentityStore
from .models import (
    AccountRecord,
    BridgeUserRef,
    LuxBridgeUser,
    PlatformUserRef,
    UserMapping,
    UserRef,
    UserView,
)

__all__ = [
    "AccountRecord",
    "AccountStore",
    "BridgeUserRef",
    "IdentityStore",
    "LuxBridgeUser",
    "PlatformUserRef",
    "UserMapping",
    "UserRef",
    "UserView",
]
