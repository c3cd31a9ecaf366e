"""
Main Orchestrator for the Ledger Bot

This module ties together all the components behind the webhook:
pending store, ledger, messenger, extractor, budget reporter and
audit logger, wired into one ConversationEngine.

DESIGN DECISION: Each external service runs either LIVE or MOCK, and
the choice is made ONCE at startup from which settings sections load.
Nothing downstream checks "are we in mock mode?" per call; the mock
collaborators simply implement the same interfaces.

- Twilio missing -> MockMessenger + PermissiveAuthenticator
- Google Sheets missing -> InMemoryLedger + InMemoryAuditStorage
- Gemini missing -> heuristic extractor + deterministic budget report
"""

import time
from enum import Enum
from functools import partial
from typing import Optional

import structlog
from pydantic import ValidationError

from ledgerbot.agents import (
    BudgetReporter,
    DeterministicBudgetReporter,
    FallbackTransactionExtractor,
    GeminiBudgetReporter,
    GeminiTransactionExtractor,
    HeuristicTransactionExtractor,
    TransactionExtractor,
)
from ledgerbot.audit import AuditLogger
from ledgerbot.config import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    Settings,
    TwilioSettings,
    get_settings,
)
from ledgerbot.conversation import (
    ConversationEngine,
    InMemoryPendingStore,
    PendingStore,
    SenderLocks,
)
from ledgerbot.conversation.replies import format_currency
from ledgerbot.services.messaging import (
    MessengerInterface,
    MockMessenger,
    PermissiveAuthenticator,
    TwilioSignatureValidator,
    TwilioWhatsAppMessenger,
    WebhookAuthenticator,
)
from ledgerbot.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
    InMemoryAuditStorage,
    InMemoryLedger,
    LedgerInterface,
)


logger = structlog.get_logger(__name__)


class BackendMode(str, Enum):
    LIVE = "live"
    MOCK = "mock"


class ResolvedBackends:
    """Loaded settings per service; None means that service runs in mock mode."""

    def __init__(
        self,
        app: AppSettings,
        twilio: Optional[TwilioSettings] = None,
        google_sheets: Optional[GoogleSheetsSettings] = None,
        gemini: Optional[GeminiSettings] = None,
    ):
        self.app = app
        self.twilio = twilio
        self.google_sheets = google_sheets
        self.gemini = gemini

    @staticmethod
    def _mode(section) -> BackendMode:
        return BackendMode.LIVE if section is not None else BackendMode.MOCK

    def modes(self) -> dict[str, BackendMode]:
        """Service modes keyed the way the status endpoint reports them."""
        return {
            "whatsapp": self._mode(self.twilio),
            "googleSheets": self._mode(self.google_sheets),
            "aiGemini": self._mode(self.gemini),
        }


def _load_section(settings: Settings, name: str):
    try:
        return getattr(settings, name)
    except ValidationError as e:
        logger.warning(
            "service_mock_mode",
            service=name,
            missing=[".".join(str(p) for p in err["loc"]) for err in e.errors()],
        )
        return None


def resolve_backends(settings: Optional[Settings] = None) -> ResolvedBackends:
    """
    Decide live/mock for every external service.

    AppSettings has defaults for everything, so a failure there is a
    real misconfiguration and is raised.
    """
    settings = settings or get_settings()
    return ResolvedBackends(
        app=settings.app,
        twilio=_load_section(settings, "twilio"),
        google_sheets=_load_section(settings, "google_sheets"),
        gemini=_load_section(settings, "gemini"),
    )


class AppComponents:
    """Everything the HTTP layer needs, built once per process."""

    def __init__(
        self,
        engine: ConversationEngine,
        store: PendingStore,
        ledger: LedgerInterface,
        messenger: MessengerInterface,
        authenticator: WebhookAuthenticator,
        audit_logger: AuditLogger,
        app_settings: AppSettings,
        modes: dict[str, BackendMode],
        webhook_url: Optional[str] = None,
    ):
        self.engine = engine
        self.store = store
        self.ledger = ledger
        self.messenger = messenger
        self.authenticator = authenticator
        self.audit_logger = audit_logger
        self.app_settings = app_settings
        self.modes = modes
        self.webhook_url = webhook_url
        self.started_at = time.monotonic()

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at


def _build_messaging(
    backends: ResolvedBackends,
) -> tuple[MessengerInterface, WebhookAuthenticator]:
    if backends.twilio is None:
        return MockMessenger(), PermissiveAuthenticator()
    return (
        TwilioWhatsAppMessenger(backends.twilio),
        TwilioSignatureValidator(backends.twilio.auth_token),
    )


def _build_storage(
    backends: ResolvedBackends,
) -> tuple[LedgerInterface, AuditStorageInterface]:
    timezone = backends.app.timezone
    if backends.google_sheets is None:
        return InMemoryLedger(timezone=timezone), InMemoryAuditStorage()
    client = GoogleSheetsClient(backends.google_sheets)
    return (
        GoogleSheetsLedger(client, timezone=timezone),
        GoogleSheetsAuditStorage(client),
    )


def _build_agents(
    backends: ResolvedBackends,
) -> tuple[TransactionExtractor, BudgetReporter]:
    app = backends.app
    heuristic = HeuristicTransactionExtractor(
        default_amounts=app.heuristic_default_amounts,
    )
    deterministic = DeterministicBudgetReporter(
        partial(format_currency, symbol=app.currency_symbol),
    )
    if backends.gemini is None:
        return heuristic, deterministic

    extractor = FallbackTransactionExtractor(
        primary=GeminiTransactionExtractor(settings=backends.gemini),
        fallback=heuristic,
    )
    reporter = GeminiBudgetReporter(
        fallback=deterministic,
        settings=backends.gemini,
        max_length=app.max_reply_length,
    )
    return extractor, reporter


def create_app_components(
    settings: Optional[Settings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Root settings. Defaults to the cached get_settings().

    Returns:
        AppComponents with a ready ConversationEngine
    """
    backends = resolve_backends(settings)
    app = backends.app

    messenger, authenticator = _build_messaging(backends)
    ledger, audit_storage = _build_storage(backends)
    extractor, budget_reporter = _build_agents(backends)

    store = InMemoryPendingStore(ttl_seconds=app.pending_ttl_seconds)
    audit_logger = AuditLogger(audit_storage)

    engine = ConversationEngine(
        store=store,
        ledger=ledger,
        messenger=messenger,
        extractor=extractor,
        budget_reporter=budget_reporter,
        audit_logger=audit_logger,
        locks=SenderLocks(),
        timezone=app.timezone,
        currency_symbol=app.currency_symbol,
        max_reply_length=app.max_reply_length,
    )

    modes = backends.modes()
    logger.info(
        "components_created",
        environment=app.environment,
        **{name: mode.value for name, mode in modes.items()},
    )

    return AppComponents(
        engine=engine,
        store=store,
        ledger=ledger,
        messenger=messenger,
        authenticator=authenticator,
        audit_logger=audit_logger,
        app_settings=app,
        modes=modes,
        webhook_url=backends.twilio.webhook_url if backends.twilio else None,
    )
