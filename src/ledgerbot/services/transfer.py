"""Transfer history paging."""

import logging

from ledgerbot.ledger.client import LedgerClient
from ledgerbot.ledger.models import TransferPage

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 10


class TransferService:
    def __init__(self, ledger: LedgerClient, page_size: int = HISTORY_PAGE_SIZE):
        self._ledger = ledger
        self.page_size = page_size

    async def get_history(self, token: str, page: int = 1) -> TransferPage:
        page = max(page, 1)
        return await self._ledger.get_transfers(token, page=page, limit=self.page_size)

    def page_count(self, history: TransferPage) -> int:
        if history.total <= 0:
            return 1
        return -(-history.total // self.page_size)
