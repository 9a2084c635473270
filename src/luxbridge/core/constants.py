"""Application-wide constants for the LuxBridge MCP server.

This module contains the closed platform set and the magic values shared
between the OAuth, session and platform layers.
"""

from enum import StrEnum

from .exceptions import UnsupportedPlatform


class Platform(StrEnum):
    """Supported investment platforms. The set is closed: every session has one slot per member."""

    SPLINT_INVEST = "splint_invest"
    MASTERWORKS = "masterworks"
    REALT = "realt"

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        """Convert a platform key into a Platform, raising UnsupportedPlatform otherwise."""
        try:
            return cls(value)
        except ValueError as e:
            raise UnsupportedPlatform(str(value)) from e

    @property
    def display_name(self) -> str:
        return PLATFORM_INFO[self]["name"]


# ========================================
# Platform Catalogue
# ========================================

PLATFORM_INFO: dict[Platform, dict[str, str]] = {
    Platform.SPLINT_INVEST: {
        "name": "Splint Invest",
        "description": "Fractional investments in wine, art and other alternative assets",
        "category": "alternative_assets",
    },
    Platform.MASTERWORKS: {
        "name": "Masterworks",
        "description": "Shares in blue-chip contemporary artworks",
        "category": "art",
    },
    Platform.REALT: {
        "name": "RealT",
        "description": "Tokenized fractional US real estate",
        "category": "real_estate",
    },
}

# ========================================
# Identifier Generation
# ========================================

ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
SESSION_SUFFIX_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"

CLIENT_ID_LENGTH = 16
CLIENT_SECRET_LENGTH = 64
AUTH_CODE_LENGTH = 32
ACCESS_TOKEN_LENGTH = 64
SESSION_SUFFIX_LENGTH = 9

SESSION_ID_PREFIX = "lux_session_"
LUX_USER_ID_PREFIX = "lux_"

# ========================================
# HTTP
# ========================================

HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
