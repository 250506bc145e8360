"""AppContext: wires DB, config, collaborators and services together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from playbookrunner.config import AppConfig, load_config
from playbookrunner.infra.db.client import MongoClient

if TYPE_CHECKING:
    from pathlib import Path

    from playbookrunner.engine.timers import ScheduleTimerManager
    from playbookrunner.infra.db.runs import RunRepo
    from playbookrunner.infra.db.schedules import ScheduleRepo
    from playbookrunner.infra.db.templates import TemplateRepo
    from playbookrunner.infra.db.updates import UpdateRepo
    from playbookrunner.infra.knowledge.client import KnowledgeClient
    from playbookrunner.infra.signal.client import LogNotifier, SignalNotifier
    from playbookrunner.services.ledger import UpdateLedger
    from playbookrunner.services.run_service import RunLifecycleService
    from playbookrunner.services.template_service import TemplateService

logger = logging.getLogger(__name__)


class AppContext:
    """Central wiring for all application dependencies.

    Lazily initializes services on first access. Call `initialize()` to
    set up the database connection and run migrations.
    """

    def __init__(self, config: AppConfig | None = None, config_path: Path | None = None) -> None:
        self.config = config or load_config(config_path)
        self._mongo: MongoClient | None = None
        self._template_repo: TemplateRepo | None = None
        self._run_repo: RunRepo | None = None
        self._schedule_repo: ScheduleRepo | None = None
        self._update_repo: UpdateRepo | None = None
        self._knowledge: KnowledgeClient | None = None
        self._notifier: SignalNotifier | LogNotifier | None = None
        self._ledger: UpdateLedger | None = None
        self._timers: ScheduleTimerManager | None = None
        self._run_service: RunLifecycleService | None = None
        self._template_service: TemplateService | None = None

    async def initialize(self) -> None:
        """Initialize the database connection and run migrations."""
        from playbookrunner.infra.db.migrations import run_migrations

        self._mongo = MongoClient(
            uri=self.config.mongodb.uri,
            database=self.config.mongodb.database,
        )
        await run_migrations(self._mongo.db)
        logger.info("AppContext initialized")

    async def close(self) -> None:
        """Stop timers and close all connections."""
        if self._timers is not None:
            await self._timers.stop()
        if self._knowledge is not None:
            await self._knowledge.close()
        if self._notifier is not None:
            await self._notifier.close()
        if self._mongo:
            self._mongo.close()
        logger.info("AppContext closed")

    @property
    def mongo(self) -> MongoClient:
        if self._mongo is None:
            raise RuntimeError("AppContext not initialized. Call initialize() first.")
        return self._mongo

    @property
    def template_repo(self) -> TemplateRepo:
        if self._template_repo is None:
            from playbookrunner.infra.db.templates import TemplateRepo

            self._template_repo = TemplateRepo(self.mongo.db)
        return self._template_repo

    @property
    def run_repo(self) -> RunRepo:
        if self._run_repo is None:
            from playbookrunner.infra.db.runs import RunRepo

            self._run_repo = RunRepo(self.mongo.db)
        return self._run_repo

    @property
    def schedule_repo(self) -> ScheduleRepo:
        if self._schedule_repo is None:
            from playbookrunner.infra.db.schedules import ScheduleRepo

            self._schedule_repo = ScheduleRepo(self.mongo.db)
        return self._schedule_repo

    @property
    def update_repo(self) -> UpdateRepo:
        if self._update_repo is None:
            from playbookrunner.infra.db.updates import UpdateRepo

            self._update_repo = UpdateRepo(self.mongo.db)
        return self._update_repo

    @property
    def knowledge(self) -> KnowledgeClient:
        if self._knowledge is None:
            from playbookrunner.infra.knowledge.client import KnowledgeClient

            self._knowledge = KnowledgeClient(self.config.knowledge)
        return self._knowledge

    @property
    def notifier(self) -> SignalNotifier | LogNotifier:
        if self._notifier is None:
            from playbookrunner.infra.signal.client import LogNotifier, SignalNotifier

            if self.config.signal.enabled:
                self._notifier = SignalNotifier(self.config.signal)
            else:
                self._notifier = LogNotifier()
        return self._notifier

    @property
    def ledger(self) -> UpdateLedger:
        if self._ledger is None:
            from playbookrunner.services.ledger import UpdateLedger

            self._ledger = UpdateLedger(self.update_repo)
        return self._ledger

    @property
    def timers(self) -> ScheduleTimerManager:
        if self._timers is None:
            from playbookrunner.engine.prompts import PromptResolver
            from playbookrunner.engine.timers import ScheduleTimerManager

            self._timers = ScheduleTimerManager(
                run_repo=self.run_repo,
                schedule_repo=self.schedule_repo,
                ledger=self.ledger,
                prompts=PromptResolver(
                    self.knowledge,
                    marker=self.config.knowledge.marker,
                    tags=self.config.knowledge.tags,
                ),
                notifier=self.notifier,
                poll_interval=self.config.scheduler.poll_interval,
            )
        return self._timers

    @property
    def run_service(self) -> RunLifecycleService:
        if self._run_service is None:
            from playbookrunner.services.run_service import RunLifecycleService

            self._run_service = RunLifecycleService(
                template_repo=self.template_repo,
                run_repo=self.run_repo,
                schedule_repo=self.schedule_repo,
                ledger=self.ledger,
                timers=self.timers,
                default_timezone=self.config.scheduler.default_timezone,
            )
        return self._run_service

    @property
    def template_service(self) -> TemplateService:
        if self._template_service is None:
            from playbookrunner.services.template_service import TemplateService

            self._template_service = TemplateService(
                self.template_repo, marker=self.config.knowledge.marker
            )
        return self._template_service
