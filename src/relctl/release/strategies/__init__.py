"""Release strategy controllers."""

from relctl.release.strategies.base import ReleaseController
from relctl.release.strategies.blue_green import BlueGreenController
from relctl.release.strategies.canary import CanaryController

__all__ = [
    "ReleaseController",
    "BlueGreenController",
    "CanaryController",
]
