"""Path matching for the small, fixed set of server routes."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Route(Enum):
    INDEX = "index"
    CONFIG = "config"
    BACKUP = "backup"


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    params: Dict[str, str] = field(default_factory=dict)


# Path parameters bind exactly one non-empty segment
ROUTES = (
    (re.compile(r"/"), Route.INDEX),
    (re.compile(r"/config"), Route.CONFIG),
    (re.compile(r"/backups/(?P<backupId>[^/]+)"), Route.BACKUP),
)


def match(path: str) -> Optional[RouteMatch]:
    """Find the route for a request path.

    The extracted parameters are raw path segments, they are not validated here.
    """
    for pattern, route in ROUTES:
        found = pattern.fullmatch(path)
        if found:
            return RouteMatch(route, found.groupdict())
    return None
