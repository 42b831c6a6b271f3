"""
Application wiring for Family Finance.

Builds every service over one set of collaborators (row store, auth,
realtime) and hands them out as a single FamilyFinanceApp.

DESIGN DECISION: services never build their own collaborators. They are
all constructed here over the same Repositories, AuditLogger and
settings, so swapping the hosted backend for the in-memory one is a
single switch.
"""

from typing import Optional

from family_finance.aggregator import DataAggregator
from family_finance.audit import AuditLogger, get_logger
from family_finance.config import get_settings
from family_finance.config.settings import AppSettings
from family_finance.ledger import LedgerExecutor
from family_finance.notifications import NotificationFanout, NotificationInbox
from family_finance.services.auth import AuthInterface, InMemoryAuth, SupabaseAuth
from family_finance.services.realtime import (
    InMemoryRealtime,
    RealtimeInterface,
    SupabaseRealtime,
)
from family_finance.services.storage import (
    InMemoryRowStore,
    Repositories,
    RowStoreInterface,
    SupabaseClient,
    SupabaseRowStore,
)
from family_finance.session import AppSession
from family_finance.workflows import (
    AdminService,
    ChatService,
    FriendWorkflow,
    IdentityService,
    MembershipWorkflow,
)


logger = get_logger(__name__)


class FamilyFinanceApp:
    """
    All application services, sharing one backend and one audit log.

    Usage:
        app = create_app_components()
        await app.session.start()
        await app.ledger.record_simple_entry(account_id, "30", "expense", app.session.current_user)
    """

    def __init__(
        self,
        store: RowStoreInterface,
        auth: AuthInterface,
        realtime: RealtimeInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        settings = settings or get_settings().app
        self.audit_logger = audit_logger or AuditLogger()
        self.store = store
        self.auth = auth
        self.realtime = realtime
        self.repositories = Repositories(store)

        self.fanout = NotificationFanout(self.repositories.notifications, self.audit_logger)
        self.inbox = NotificationInbox(self.repositories.notifications)
        self.aggregator = DataAggregator(self.repositories, auth, self.audit_logger, settings)
        self.session = AppSession(self.aggregator, auth, self.audit_logger, settings)
        self.ledger = LedgerExecutor(self.repositories, self.fanout, self.audit_logger, settings)
        self.membership = MembershipWorkflow(
            self.repositories, self.fanout, self.audit_logger, settings
        )
        self.friends = FriendWorkflow(self.repositories)
        self.chat = ChatService(self.repositories, realtime)
        self.identity = IdentityService(self.repositories, auth, self.audit_logger, settings)
        self.admin = AdminService(self.repositories, self.fanout)


def create_in_memory_app(
    store: Optional[InMemoryRowStore] = None,
    settings: Optional[AppSettings] = None,
) -> FamilyFinanceApp:
    """Fully offline application, used by the tests."""
    store = store or InMemoryRowStore()
    return FamilyFinanceApp(
        store=store,
        auth=InMemoryAuth(),
        realtime=InMemoryRealtime(store),
        settings=settings,
    )


def create_app_components(use_supabase: bool = True) -> FamilyFinanceApp:
    """
    Factory function to create all application components.

    Args:
        use_supabase: Whether to connect to the hosted backend.
                      Falls back to the in-memory backend when Supabase
                      is not configured.

    Returns:
        FamilyFinanceApp
    """
    if not use_supabase:
        return create_in_memory_app()

    try:
        client = SupabaseClient()
    except Exception as e:
        # Backend not configured - continue offline
        logger.warning("supabase_not_configured", error=str(e))
        return create_in_memory_app()

    return FamilyFinanceApp(
        store=SupabaseRowStore(client),
        auth=SupabaseAuth(client),
        realtime=SupabaseRealtime(client),
    )
