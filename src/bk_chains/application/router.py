"""ChainRouter — dispatch by numeric chain id."""

import logging
from collections.abc import Callable
from typing import TypeVar

from src.bk_chains.application.registry import ChainServiceRegistry
from src.bk_chains.services.base import AbstractChainService, AbstractEvmChainService
from src.bk_common.enums import chain_name_for_id
from src.bk_common.errors import ChainServiceNotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChainRouter:
    def __init__(self, registry: ChainServiceRegistry) -> None:
        self._registry = registry

    def dispatch(self, chain_id: int, action: Callable[[AbstractChainService], T]) -> T:
        """Resolve the service for `chain_id` and call `action` with it.

        EVM services get their current chain id set first. `action` may
        return an awaitable; the caller awaits it.
        """
        chain = chain_name_for_id(chain_id)
        if chain is None:
            raise ChainServiceNotFoundError(f"chain id {chain_id}")

        service = self._registry.get_service(chain.value)

        if isinstance(service, AbstractEvmChainService):
            service.set_chain_id(chain_id)
        logger.debug("Dispatching chain id %d to %s", chain_id, type(service).__name__)
        return action(service)
