"""
Supervision - Endpoint Store

Arène des endpoints indexée par id, avec un verrou par endpoint.
"""

import asyncio
from typing import Dict, List, Optional

from .interfaces import Endpoint, IEndpointStore


class EndpointNotFoundError(KeyError):
    """Endpoint inconnu."""

    def __init__(self, endpoint_id: str) -> None:
        self.endpoint_id = endpoint_id
        super().__init__(f"Endpoint not found: {endpoint_id}")


class DuplicateEndpointError(ValueError):
    """Endpoint déjà enregistré."""

    def __init__(self, endpoint_id: str) -> None:
        self.endpoint_id = endpoint_id
        super().__init__(f"Endpoint already registered: {endpoint_id}")


class InMemoryEndpointStore(IEndpointStore):
    """
    Stockage en mémoire des endpoints.

    Aucun verrou global: chaque endpoint a son propre asyncio.Lock,
    créé à la demande et supprimé avec l'endpoint sauf s'il est tenu.
    """

    def __init__(self) -> None:
        self._endpoints: Dict[str, Endpoint] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def create(self, endpoint: Endpoint) -> Endpoint:
        if endpoint.id in self._endpoints:
            raise DuplicateEndpointError(endpoint.id)
        self._endpoints[endpoint.id] = endpoint
        return endpoint

    def get(self, endpoint_id: str) -> Optional[Endpoint]:
        return self._endpoints.get(endpoint_id)

    def require(self, endpoint_id: str) -> Endpoint:
        """
        Retourne l'endpoint.

        Raises:
            EndpointNotFoundError: Si inconnu
        """
        endpoint = self._endpoints.get(endpoint_id)
        if endpoint is None:
            raise EndpointNotFoundError(endpoint_id)
        return endpoint

    def delete(self, endpoint_id: str) -> bool:
        # Verrou tenu par une probe en vol: conservé pour un réenregistrement (SUP_004)
        lock = self._locks.get(endpoint_id)
        if lock is not None and not lock.locked():
            del self._locks[endpoint_id]
        return self._endpoints.pop(endpoint_id, None) is not None

    def list(self) -> List[Endpoint]:
        return list(self._endpoints.values())

    def lock_for(self, endpoint_id: str) -> asyncio.Lock:
        """Verrou de l'endpoint (une seule probe en vol, SUP_004)."""
        lock = self._locks.get(endpoint_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[endpoint_id] = lock
        return lock

    def __contains__(self, endpoint_id: object) -> bool:
        return endpoint_id in self._endpoints

    def __len__(self) -> int:
        return len(self._endpoints)
