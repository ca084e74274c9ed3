"""Device authorization flow and token lifecycle."""

from solidclaw.auth.device import DeviceAuthorizer, DeviceGrant, PollResult, PollStatus
from solidclaw.auth.tokens import IssuedToken, TokenService

__all__ = [
    "DeviceAuthorizer",
    "DeviceGrant",
    "IssuedToken",
    "PollResult",
    "PollStatus",
    "TokenService",
]
