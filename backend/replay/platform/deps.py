from fastapi import Request

from replay.platform.services.settlement import SettlementNetwork
from replay.platform.storage.base import ReplyStore


def get_store(request: Request) -> ReplyStore:
    return request.app.state.store


def get_settlement_network(request: Request) -> SettlementNetwork:
    return request.app.state.settlement_network
