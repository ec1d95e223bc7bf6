"""
Main Orchestrator for Subtrack

Ties the components together:
- ClientContext: every external-service client for one process, built once
  by `create_app_components` and closed on shutdown
- SubscriptionTracker: one user's page state - session, live query, form,
  totals, report, the shared `loading` flag and the transient message

The tracker enforces the boundaries:
- Nothing reads or writes before the session is ready
- The subscription list comes only from the live query
- One operation at a time; a second one is refused while `loading` is set
- Every failure becomes a message, never an exception on the page
"""

from functools import partial
from typing import Callable, Optional

import structlog

from subtrack.agents import REPORT_FAILURE_MESSAGE, ReportFailureError, SpendingReport, SpendingReportAgent
from subtrack.audit import ActivityLogger, configure_logging, create_correlation_id
from subtrack.config import get_settings
from subtrack.config.settings import AppSettings
from subtrack.models.activity import ActivityEventType
from subtrack.models.subscription import (
    ErrorKind,
    OperationResult,
    SpendTotals,
    Subscription,
    SubscriptionSnapshot,
)
from subtrack.queries import totals_for_snapshot
from subtrack.services.auth import (
    AuthProviderInterface,
    FirebaseAuthProvider,
    InMemoryAuthProvider,
    SessionBootstrapper,
    SessionState,
)
from subtrack.services.storage import (
    InMemorySubscriptionStore,
    LiveQuery,
    ReadFailureError,
    StorageError,
    SubscriptionStoreInterface,
)
from subtrack.services.storage.firestore import FirestoreClient, FirestoreSubscriptionStore
from subtrack.validation import SubscriptionForm, ValidationFailureError


logger = structlog.get_logger(__name__)

CREATED_MESSAGE = "Subscription added successfully!"
UPDATED_MESSAGE = "Subscription updated successfully!"
DELETED_MESSAGE = "Subscription deleted successfully!"
REPORT_READY_MESSAGE = "Your report is ready."
SAVE_FAILURE_MESSAGE = "Failed to save subscription. Please try again."
DELETE_FAILURE_MESSAGE = "Failed to delete subscription. Please try again."
READ_FAILURE_MESSAGE = "Failed to load subscriptions from the database."
NOT_READY_MESSAGE = "You're not signed in yet. Please wait a moment."
BUSY_MESSAGE = "Please wait for the current operation to finish."
NO_SUBSCRIPTIONS_MESSAGE = "Add a subscription before requesting a report."
EMPTY_STATE_MESSAGE = "No subscriptions added yet. Add your first one to get started!"


class ClientContext:
    """
    Holds the store, the report agent, the activity logger and a factory
    for auth providers, for one application process.

    Constructed once at startup and passed to every tracker, so there
    are no module-level client singletons and tests can pass fakes.
    Sign-in state is per browser session: every tracker gets its own
    auth provider from `auth_factory`.
    """

    def __init__(
        self,
        app_settings: AppSettings,
        auth_factory: Callable[[], AuthProviderInterface],
        store: SubscriptionStoreInterface,
        report_agent: SpendingReportAgent,
        activity_logger: Optional[ActivityLogger] = None,
        backend: str = "memory",
    ):
        self.app_settings = app_settings
        self.auth_factory = auth_factory
        self.store = store
        self.report_agent = report_agent
        self.activity_logger = activity_logger or ActivityLogger()
        self.backend = backend
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def create_tracker(self) -> "SubscriptionTracker":
        return SubscriptionTracker(self, self.auth_factory())

    def close(self) -> None:
        """Release every live query and client. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.store.close()
        logger.info("client_context_closed", backend=self.backend)


class SubscriptionTracker:
    """
    Page state and operations for one user.

    State machine shared by writes and reports:
        Idle -> Pending -> Idle (success) | Idle (error)
    `loading` is True exactly while an operation is Pending.
    """

    def __init__(self, context: ClientContext, auth: AuthProviderInterface):
        self._context = context
        self._activity = context.activity_logger
        self.auth = auth
        self.session = SessionBootstrapper(
            provider=auth,
            initial_token=context.app_settings.initial_auth_token,
            activity_logger=context.activity_logger,
        )
        self.form = SubscriptionForm()
        self.loading = False
        self.error = ""
        self.message = ""
        self.report: Optional[SpendingReport] = None
        self._live_query: Optional[LiveQuery] = None

    # -- session & live query --------------------------------------------------

    @property
    def session_state(self) -> SessionState:
        return self.session.state

    @property
    def user_id(self) -> Optional[str]:
        return self.session.state.user_id

    @property
    def is_ready(self) -> bool:
        return self.session.state.is_ready

    @property
    def live_query(self) -> Optional[LiveQuery]:
        return self._live_query

    async def start(self) -> SessionState:
        """Bootstrap the session, then open the live query."""
        state = await self.session.start()
        if state.error:
            self._fail(state.error)
        self.sync_live_query()
        return state

    def sync_live_query(self) -> None:
        """
        Make the live query match the session.

        Closes the current handle when the user changes or the session is no
        longer ready, and opens one for the current user if none is open.
        """
        state = self.session.state
        target = state.user_id if state.is_ready else None

        current = self._live_query
        if current is not None and (current.closed or current.user_id != target):
            current.close()
            self._activity.log_live_query(current.user_id, current.path, opened=False)
            self._live_query = None

        if target is None or self._live_query is not None:
            return

        try:
            handle = self._context.store.listen(target)
        except ReadFailureError as e:
            self._activity.log_read_failed(target, str(e))
            self._fail(READ_FAILURE_MESSAGE)
            return

        handle.on_error(self._on_read_error)
        self._live_query = handle
        self._activity.log_live_query(target, handle.path)

    def _on_read_error(self, error: Exception) -> None:
        self._activity.log_read_failed(self.user_id or "", str(error))
        self._fail(READ_FAILURE_MESSAGE)

    # -- derived view state ----------------------------------------------------

    @property
    def snapshot(self) -> Optional[SubscriptionSnapshot]:
        if self._live_query is None:
            return None
        return self._live_query.latest()

    @property
    def subscriptions(self) -> list[Subscription]:
        snapshot = self.snapshot
        return list(snapshot.subscriptions) if snapshot else []

    @property
    def totals(self) -> SpendTotals:
        return totals_for_snapshot(self.snapshot)

    @property
    def show_empty_state(self) -> bool:
        """True when the list is empty and nothing is in flight."""
        return not self.subscriptions and not self.loading

    def find(self, subscription_id: str) -> Optional[Subscription]:
        for subscription in self.subscriptions:
            if subscription.id == subscription_id:
                return subscription
        return None

    # -- transient message channel ---------------------------------------------

    def _succeed(self, message: str) -> None:
        self.message = message
        self.error = ""

    def _fail(self, message: str) -> None:
        self.error = message
        self.message = ""

    def _begin(self) -> Optional[OperationResult]:
        """Enter Pending, or explain why an operation can't start."""
        if not self.is_ready:
            self._fail(NOT_READY_MESSAGE)
            return OperationResult.failure(ErrorKind.AUTH, NOT_READY_MESSAGE)
        if self.loading:
            return OperationResult.failure(ErrorKind.BUSY, BUSY_MESSAGE)
        self.loading = True
        self.error = ""
        return None

    # -- form ------------------------------------------------------------------

    def start_edit(self, subscription: Subscription) -> None:
        self.form.start_edit(subscription)

    def cancel_edit(self) -> None:
        self.form.cancel_edit()

    async def submit(self) -> OperationResult:
        """
        Validate the form and create or update a subscription.

        The form is cleared after a successful write and kept as typed
        after a failed one.
        """
        correlation_id = create_correlation_id()

        try:
            draft = self.form.validate_draft()
        except ValidationFailureError as e:
            self._activity.log_validation_failed(self.user_id, e.fields, correlation_id)
            self._fail(str(e))
            return OperationResult.failure(ErrorKind.VALIDATION, str(e))

        refused = self._begin()
        if refused is not None:
            return refused

        user_id = self.user_id
        editing_id = self.form.editing_id
        try:
            if editing_id:
                await self._context.store.update(user_id, editing_id, draft)
                self._activity.log_subscription_saved(
                    ActivityEventType.SUBSCRIPTION_UPDATED,
                    user_id, editing_id, draft.name, correlation_id,
                )
                result = OperationResult.success(UPDATED_MESSAGE, editing_id)
            else:
                created = await self._context.store.create(user_id, draft)
                self._activity.log_subscription_saved(
                    ActivityEventType.SUBSCRIPTION_CREATED,
                    user_id, created.id, draft.name, correlation_id,
                )
                result = OperationResult.success(CREATED_MESSAGE, created.id)
        except StorageError as e:
            self._activity.log_write_failed(
                user_id=user_id,
                operation="update" if editing_id else "create",
                error_message=str(e),
                subscription_id=editing_id,
                correlation_id=correlation_id,
            )
            self._fail(SAVE_FAILURE_MESSAGE)
            return OperationResult.failure(ErrorKind.WRITE, SAVE_FAILURE_MESSAGE, editing_id)
        finally:
            self.loading = False

        self.form.reset()
        self._succeed(result.message)
        return result

    async def delete(self, subscription_id: str) -> OperationResult:
        """Delete a subscription; cancels an edit that targets it."""
        correlation_id = create_correlation_id()
        refused = self._begin()
        if refused is not None:
            return refused

        user_id = self.user_id
        try:
            await self._context.store.delete(user_id, subscription_id)
        except StorageError as e:
            self._activity.log_write_failed(
                user_id=user_id,
                operation="delete",
                error_message=str(e),
                subscription_id=subscription_id,
                correlation_id=correlation_id,
            )
            self._fail(DELETE_FAILURE_MESSAGE)
            return OperationResult.failure(ErrorKind.WRITE, DELETE_FAILURE_MESSAGE, subscription_id)
        finally:
            self.loading = False

        self._activity.log_subscription_saved(
            ActivityEventType.SUBSCRIPTION_DELETED,
            user_id, subscription_id, correlation_id=correlation_id,
        )
        if self.form.editing_id == subscription_id:
            self.form.cancel_edit()
        self._succeed(DELETED_MESSAGE)
        return OperationResult.success(DELETED_MESSAGE, subscription_id)

    # -- report ----------------------------------------------------------------

    async def generate_report(self) -> OperationResult:
        """
        Ask for a fresh spending report.

        Any previous report is dropped as soon as the request starts.
        """
        snapshot = self.snapshot
        subscriptions = list(snapshot.subscriptions) if snapshot else []
        if self.is_ready and not subscriptions:
            self._fail(NO_SUBSCRIPTIONS_MESSAGE)
            return OperationResult.failure(ErrorKind.VALIDATION, NO_SUBSCRIPTIONS_MESSAGE)

        refused = self._begin()
        if refused is not None:
            return refused

        correlation_id = create_correlation_id()
        user_id = self.user_id
        self.message = ""
        self.report = None
        self._activity.log_report_requested(user_id, len(subscriptions), correlation_id)

        try:
            report = await self._context.report_agent.generate_report(
                subscriptions, totals_for_snapshot(snapshot)
            )
        except ReportFailureError as e:
            self._activity.log_report_finished(
                user_id, correlation_id, error_message=str(e), status_code=e.status_code
            )
            self._fail(REPORT_FAILURE_MESSAGE)
            return OperationResult.failure(ErrorKind.REPORT, REPORT_FAILURE_MESSAGE)
        finally:
            self.loading = False

        self.report = report
        self._activity.log_report_finished(user_id, correlation_id, characters=len(report.text))
        self._succeed(REPORT_READY_MESSAGE)
        return OperationResult.success(REPORT_READY_MESSAGE)

    # -- teardown --------------------------------------------------------------

    def close(self) -> None:
        """Detach the live query and stop following auth state."""
        if self._live_query is not None:
            self._live_query.close()
            self._activity.log_live_query(
                self._live_query.user_id, self._live_query.path, opened=False
            )
            self._live_query = None
        self.session.close()


def create_app_components(
    use_cloud_backend: Optional[bool] = None,
    app_settings: Optional[AppSettings] = None,
) -> ClientContext:
    """
    Factory function to create the client context.

    Args:
        use_cloud_backend: Whether to use Firebase. Defaults to the
                    USE_CLOUD_BACKEND setting. Set to False for tests
                    and offline runs.
        app_settings: Settings override; loaded from the environment if None

    Returns:
        A ClientContext; falls back to in-memory services if Firebase
        is not configured.
    """
    settings = app_settings or get_settings().app
    configure_logging(settings.log_level)
    activity_logger = ActivityLogger()

    if use_cloud_backend is None:
        use_cloud_backend = settings.use_cloud_backend

    auth_factory: Optional[Callable[[], AuthProviderInterface]] = None
    store: Optional[SubscriptionStoreInterface] = None
    backend = "memory"

    if use_cloud_backend:
        try:
            firebase_settings = get_settings().firebase
            store = FirestoreSubscriptionStore(
                settings.app_id, FirestoreClient(firebase_settings)
            )
            auth_factory = partial(FirebaseAuthProvider, firebase_settings)
            backend = "firebase"
        except Exception as e:
            # Firebase not configured - continue in memory
            logger.warning("cloud_backend_unavailable", error=str(e))
            activity_logger.log_error("cloud_backend_unavailable", str(e))
            auth_factory = None
            store = None

    if auth_factory is None or store is None:
        auth_factory = InMemoryAuthProvider
        store = InMemorySubscriptionStore(settings.app_id)
        backend = "memory"

    report_agent = SpendingReportAgent(
        settings=get_settings().gemini,
        currency_symbol=settings.currency_symbol,
    )

    return ClientContext(
        app_settings=settings,
        auth_factory=auth_factory,
        store=store,
        report_agent=report_agent,
        activity_logger=activity_logger,
        backend=backend,
    )
