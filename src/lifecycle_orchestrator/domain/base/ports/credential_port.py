"""Domain port for caller credentials."""

from abc import ABC, abstractmethod
from typing import Iterable


class CredentialPort(ABC):
    """Supplies the caller's default region and root container identity."""

    @abstractmethod
    def get_region(self) -> str:
        """Get the region the caller's credentials default to."""

    @abstractmethod
    def get_caller_root_id(self) -> str:
        """Get the identifier of the caller's root container (tenancy or organization root)."""

    @abstractmethod
    def list_regions(self, exclude_home: bool = False, exclude: Iterable[str] = ()) -> list[str]:
        """
        List the regions the caller is subscribed to, sorted by name.

        Args:
            exclude_home: Leave out the home region.
            exclude: Region names to leave out.
        """
