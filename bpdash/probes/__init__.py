"""Probe registry and abstract Probe base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from bpdash.fetcher import open_client

if TYPE_CHECKING:
    import httpx

    from bpdash.models import CardData, CardOptions


class Probe(ABC):
    """Abstract base class for all node probes.

    Each node kind (block producer, RPC, explorer) implements a concrete
    subclass that knows which remote calls to make and how to merge
    their outcomes into one ``CardData``.  Probes never raise for remote
    failures: they are reported through ``CardData.error``.
    """

    kind: ClassVar[str]

    async def build(
        self, options: CardOptions, client: httpx.AsyncClient | None = None
    ) -> CardData:
        """Probe one node and return its card.

        Args:
            options: Node identity, configured entry and timeout.
            client: HTTP client to reuse; a private one is opened (and
                closed) when omitted.

        Returns:
            A fully populated ``CardData`` for this probe's kind.
        """
        if client is None:
            async with open_client() as own_client:
                return await self.probe(options, own_client)
        return await self.probe(options, client)

    @abstractmethod
    async def probe(self, options: CardOptions, client: httpx.AsyncClient) -> CardData:
        """Run the remote calls for one node with *client*."""


def _build_registry() -> dict[str, type[Probe]]:
    """Build the kind → Probe-class mapping.

    Imports are deferred to avoid circular imports and to keep the
    registry definition in one place.
    """
    from bpdash.probes.bp import BlockProducerProbe
    from bpdash.probes.explorer import ExplorerProbe
    from bpdash.probes.rpc import RpcProbe

    return {
        "bp": BlockProducerProbe,
        "rpc": RpcProbe,
        "explorer": ExplorerProbe,
    }


def get_probe(kind: str) -> Probe:
    """Look up and instantiate the probe for *kind*.

    Args:
        kind: Node kind (``"bp"``, ``"rpc"`` or ``"explorer"``).

    Returns:
        An instance of the matching ``Probe`` subclass.

    Raises:
        ValueError: If *kind* is not in the registry.
    """
    registry = _build_registry()
    probe_cls = registry.get(kind)
    if probe_cls is None:
        known = ", ".join(sorted(registry))
        raise ValueError(f"Unknown node kind {kind!r}. Known kinds: {known}")
    return probe_cls()


def registered_kinds() -> list[str]:
    """Return a sorted list of all registered node kinds."""
    return sorted(_build_registry())
