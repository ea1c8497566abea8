"""Tests for bk_chains ChainRouter dispatch by numeric chain id."""
from unittest.mock import MagicMock

import pytest

from src.bk_chains.application.registry import ChainServiceRegistry, register_builtin_services
from src.bk_chains.application.router import ChainRouter
from src.bk_chains.services.chains import PolygonService, SolanaService
from src.bk_common.errors import ChainServiceNotFoundError


@pytest.fixture
def router() -> ChainRouter:
    return ChainRouter(register_builtin_services(ChainServiceRegistry(MagicMock())))


class TestDispatch:
    def test_sets_evm_chain_id(self, router) -> None:
        service = router.dispatch(80002, lambda s: s)
        assert isinstance(service, PolygonService)
        assert service.get_chain_id() == 80002

    def test_action_result_returned(self, router) -> None:
        assert router.dispatch(137, lambda s: s.get_chain_name()) == "Polygon"

    def test_solana_dispatch(self, router) -> None:
        assert isinstance(router.dispatch(101, lambda s: s), SolanaService)

    def test_unknown_chain_id(self, router) -> None:
        with pytest.raises(ChainServiceNotFoundError):
            router.dispatch(999999, lambda s: s)

    def test_registered_id_without_service(self) -> None:
        router = ChainRouter(ChainServiceRegistry(MagicMock()))
        with pytest.raises(ChainServiceNotFoundError):
            router.dispatch(1, lambda s: s)
