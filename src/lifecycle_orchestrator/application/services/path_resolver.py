"""Hierarchical name-path lookup over parent/child resource collections."""

from typing import Callable, Optional, Union

from lifecycle_orchestrator.domain.base.value_objects import ResourceHandle, ResourcePath
from lifecycle_orchestrator.infrastructure.logging.logger import get_logger

logger = get_logger(__name__)

ChildLookup = Callable[[str, ResourceHandle], Optional[ResourceHandle]]
RootProvider = Callable[[], ResourceHandle]


class PathResolver:
    """
    Resolve paths such as ``/dev/project/user`` one segment at a time.

    ``lookup_child(name, parent)`` returns the first active child named
    ``name`` in provider listing order, or ``None``. Same-named active siblings
    are not disambiguated further: the first one returned wins.
    """

    def __init__(self, lookup_child: ChildLookup, root_provider: RootProvider) -> None:
        self._lookup_child = lookup_child
        self._root_provider = root_provider

    def resolve(
        self,
        path: Union[str, ResourcePath],
        start: Optional[ResourceHandle] = None,
    ) -> Optional[ResourceHandle]:
        """
        Resolve ``path`` to a handle.

        An absolute path (leading separator) always starts at the root, ignoring
        ``start``. A relative path starts at ``start``, or the root when no
        start is given. The empty path resolves to its starting point.

        Returns:
            The resolved handle, or None as soon as one segment has no active match.
        """
        parsed = ResourcePath.parse(path) if isinstance(path, str) else path

        if parsed.absolute or start is None:
            current = self._root_provider()
        else:
            current = start

        for depth, segment in enumerate(parsed.segments):
            logger.debug("Looking for %r in parent %s", segment, current.resource_id)
            child = self._lookup_child(segment, current)
            if child is None:
                logger.debug(
                    "Path %s not found: no active %r under %s (depth %d)",
                    parsed,
                    segment,
                    current.resource_id,
                    depth,
                )
                return None
            current = child

        return current
