"""Location capability contract and host-independent providers."""

from .provider import (  # noqa: F401
    LocationCallback,
    LocationProvider,
    PermissionStatus,
    SubscriptionHandle,
    SubscriptionOptions,
    UnavailableLocationProvider,
)
from .replay import ReplayLocationProvider  # noqa: F401
