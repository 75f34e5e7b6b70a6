"""
Explicit wiring of clients and services.

Nothing here is a module global: the API keeps one container on
`app.state`, the worker keeps one per process, tests build their own.
"""

from functools import cached_property
from typing import Optional

from psycopg_pool import ConnectionPool

from autobrief.application.chat_service import ChatService
from autobrief.application.intake_service import IntakeService, ProcessingTrigger
from autobrief.application.payment_service import PaymentService, TransactionSource
from autobrief.application.processing_service import ProcessingService
from autobrief.application.summary_service import SummaryService
from autobrief.config import Settings
from autobrief.infrastructure.blockchain.solana_rpc import SolanaRpcClient
from autobrief.infrastructure.db.payment_repository import PaymentRepository
from autobrief.infrastructure.db.summary_repository import SummaryRepository
from autobrief.infrastructure.db.user_repository import UserRepository
from autobrief.infrastructure.extraction.extractor import TextExtractor
from autobrief.infrastructure.llm.openai_client import OpenAIClient
from autobrief.infrastructure.messaging.celery_app import CeleryTrigger
from autobrief.infrastructure.messaging.change_feed import (
    ChangeFeed,
    ChangePublisher,
    RedisChangeFeed,
    RedisChangePublisher,
)
from autobrief.infrastructure.storage.object_store import LocalObjectStore, ObjectStore


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        pool: ConnectionPool,
        *,
        publisher: Optional[ChangePublisher] = None,
        feed: Optional[ChangeFeed] = None,
        store: Optional[ObjectStore] = None,
        trigger: Optional[ProcessingTrigger] = None,
        llm: Optional[OpenAIClient] = None,
        rpc: Optional[TransactionSource] = None,
    ) -> None:
        self.settings = settings
        self.pool = pool
        self.publisher = publisher or RedisChangePublisher.from_url(settings.redis_url)
        self.store = store or LocalObjectStore(settings.storage_root)
        self.summaries = SummaryRepository(pool, self.publisher)
        self.users = UserRepository(pool)
        self.payments = PaymentRepository(pool)
        self._feed = feed
        self._trigger = trigger
        self._llm = llm
        self._rpc = rpc

    def ensure_schema(self) -> None:
        self.summaries.ensure_table()
        self.users.ensure_table()
        self.payments.ensure_table()

    @property
    def feed(self) -> ChangeFeed:
        if self._feed is None:
            self._feed = RedisChangeFeed.from_url(self.settings.redis_url)
        return self._feed

    async def aclose(self) -> None:
        close = getattr(self._feed, "aclose", None)
        if close is not None:
            await close()

    @cached_property
    def llm(self) -> OpenAIClient:
        # Built on first use so the API process can start without an OpenAI key.
        return self._llm or OpenAIClient.from_settings(self.settings)

    @cached_property
    def intake(self) -> IntakeService:
        return IntakeService(
            self.summaries, self.store, self._trigger or CeleryTrigger(), self.settings
        )

    @cached_property
    def processing(self) -> ProcessingService:
        return ProcessingService(
            self.summaries,
            self.store,
            TextExtractor(self.llm),
            SummaryService(self.llm, max_chars=self.settings.max_content_chars),
        )

    @cached_property
    def chat(self) -> ChatService:
        return ChatService(self.llm)

    @cached_property
    def payment(self) -> PaymentService:
        rpc = self._rpc or SolanaRpcClient(self.settings.solana_rpc_url)
        return PaymentService(rpc, self.payments, self.settings)
