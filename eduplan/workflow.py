"""
Workflow controller for EduPlan.

The controller owns one ``AppState`` and replaces it through its operations.
The mode a session is in (logged out, idle, generating, capturing) is a
single tagged value, so combinations such as "capturing while generating"
cannot be represented. Persistence is an explicit step after a transition
is committed: session flags on login/logout, and the history (reloaded,
changed and saved in one step against the shared record) whenever a plan
is added or updated.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from eduplan.catalog import TEST_KINDS
from eduplan.errors import (
    CredentialError,
    DeviceAccessError,
    GenerationError,
    GenerationInProgressError,
    InputValidationError,
)
from eduplan.models import (
    CaptureIntent,
    GradingResult,
    LessonPlan,
    LessonPlanRequest,
    Session,
    Tier,
)

logger = logging.getLogger(__name__)

DEFAULT_PASSCODES = {
    "2026": Tier.STANDARD,
    "150718": Tier.ELEVATED,
}

PLAN_VIEW = "plan"
TEST_VIEW = "test"
VIEWS = (PLAN_VIEW, TEST_VIEW)

TEST_ERROR_NOTICE = "Erro ao gerar avaliação. Tente novamente."
CAMERA_ERROR_NOTICE = "Erro ao processar imagem."


# --- Modes (mutually exclusive) ---


@dataclass(frozen=True)
class LoggedOut:
    error: bool = False


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Generating:
    operation: str
    intent: Optional[CaptureIntent] = None


@dataclass(frozen=True)
class Capturing:
    intent: CaptureIntent


# --- Plan selection ---


@dataclass(frozen=True)
class NoPlanSelected:
    pass


@dataclass(frozen=True)
class PlanSelected:
    plan_id: str
    view: str = PLAN_VIEW


@dataclass(frozen=True)
class AppState:
    mode: object = field(default_factory=LoggedOut)
    session: Session = field(default_factory=Session)
    history: Tuple[LessonPlan, ...] = ()
    selection: object = field(default_factory=NoPlanSelected)
    draft: LessonPlanRequest = field(default_factory=LessonPlanRequest)
    credential_missing: bool = False
    grading_result: Optional[GradingResult] = None
    notice: Optional[str] = None

    @property
    def logged_in(self):
        return not isinstance(self.mode, LoggedOut)

    @property
    def login_error(self):
        return isinstance(self.mode, LoggedOut) and self.mode.error

    @property
    def generating(self):
        return isinstance(self.mode, Generating)

    @property
    def capture_intent(self):
        if isinstance(self.mode, (Capturing, Generating)):
            return self.mode.intent
        return None

    @property
    def view(self):
        if isinstance(self.selection, PlanSelected):
            return self.selection.view
        return PLAN_VIEW

    @property
    def current_plan(self):
        if not isinstance(self.selection, PlanSelected):
            return None
        return find_plan(self.history, self.selection.plan_id)


def find_plan(history, plan_id):
    for plan in history:
        if plan.id == plan_id:
            return plan
    return None


def prepend_plan(history, plan):
    """Newest plans go first."""
    return (plan,) + tuple(history)


def replace_plan(history, plan):
    """Swap the entry whose id matches ``plan.id``; other entries are untouched."""
    return tuple(plan if p.id == plan.id else p for p in history)


class WorkflowController:
    """
    Drives login, plan and test generation, and camera capture for one
    browser session (or one CLI run).

    Args:
        client: GenerationClient used for every AI call.
        store: PersistentStore for session flags and history.
        camera: Optional CameraCapture; camera operations need one.
        passcodes: Mapping of accepted passcode to Tier.
        on_credential_request: Callable invoked to start the credential
            selection flow (settings page, CLI prompt).
    """

    def __init__(self, client, store, camera=None, passcodes=None, on_credential_request=None):
        self.client = client
        self.store = store
        self.camera = camera
        self.passcodes = dict(passcodes or DEFAULT_PASSCODES)
        self.on_credential_request = on_credential_request
        self._dispatch_lock = threading.Lock()
        self.state = self.restore()

    # --- State plumbing ---

    def restore(self):
        """Rebuild the state from the store, as on a fresh page load."""
        session = self.store.load_session()
        return AppState(
            mode=Idle() if session.authenticated else LoggedOut(),
            session=session,
            history=tuple(self.store.load_history()),
            credential_missing=not self.client.has_credential(),
        )

    def _commit(self, state):
        self.state = state

    def refresh_history(self):
        """Pick up plans saved by other sessions since the last load."""
        if not self.state.generating:
            self._commit(replace(self.state, history=tuple(self.store.load_history())))

    def _ensure_ready(self):
        if not self.state.logged_in:
            raise InputValidationError("Not logged in", user_message="Faça login para continuar.")
        if self.state.generating:
            raise GenerationInProgressError(f"Already running {self.state.mode.operation}")

    @property
    def current_plan(self):
        return self.state.current_plan

    # --- Authentication ---

    def login(self, passcode):
        """Check ``passcode``; on success the session gets its tier.

        Returns:
            True when logged in, False when the passcode was rejected.
        """
        tier = self.passcodes.get(passcode or "")
        if tier is None:
            logger.info("Rejected passcode attempt")
            self._commit(replace(self.state, mode=LoggedOut(error=True), session=Session()))
            return False

        session = Session(authenticated=True, tier=tier)
        self._commit(replace(self.state, mode=Idle(), session=session, notice=None))
        self.store.save_session(session)
        logger.info("Logged in with %s tier", tier.value)
        return True

    def clear_login_error(self):
        if self.state.login_error:
            self._commit(replace(self.state, mode=LoggedOut()))

    def logout(self):
        """Clear the session; the history stays on the device."""
        if self.camera is not None:
            self.camera.close()
        self.store.clear_session()
        self._commit(
            AppState(history=self.state.history, credential_missing=self.state.credential_missing)
        )

    # --- Navigation and form ---

    def new_plan(self):
        self._commit(replace(self.state, selection=NoPlanSelected(), grading_result=None))

    def select_plan(self, plan_id):
        """Raises KeyError for an id that is not in the history."""
        if find_plan(self.state.history, plan_id) is None:
            raise KeyError(plan_id)
        self._commit(
            replace(self.state, selection=PlanSelected(plan_id, PLAN_VIEW), grading_result=None)
        )

    def set_view(self, view):
        if view not in VIEWS:
            raise InputValidationError(f"Unknown view: {view}")
        if isinstance(self.state.selection, PlanSelected):
            self._commit(replace(self.state, selection=replace(self.state.selection, view=view)))

    def update_draft(self, **fields):
        self._commit(replace(self.state, draft=replace(self.state.draft, **fields)))

    def dismiss_notice(self):
        self._commit(replace(self.state, notice=None))

    def clear_grading_result(self):
        self._commit(replace(self.state, grading_result=None))

    # --- Credential selection ---

    def open_credential_selection(self):
        """Start the credential selection flow.

        The missing-credential flag is cleared as soon as the flow starts,
        without waiting for the user to finish it.
        """
        if self.on_credential_request is not None:
            self.on_credential_request()
        self._commit(replace(self.state, credential_missing=False))

    def credential_updated(self, client):
        """Swap in a client built with a newly selected credential."""
        self.client = client
        self._commit(replace(self.state, credential_missing=not client.has_credential()))

    # --- Generation ---

    def _generate(self, operation, fn, *args, intent=None, notice=None):
        """Run one Generation Client call with the generating mode held.

        Returns the call's result, or None when it failed; failures never
        touch history or the current plan.
        """
        if not self._dispatch_lock.acquire(blocking=False):
            raise GenerationInProgressError(f"Another generation is running ({operation})")
        resume = self.state.mode
        self.state = replace(self.state, mode=Generating(operation, intent), notice=None)
        try:
            return fn(*args)
        except CredentialError as e:
            logger.warning("%s needs a credential: %s", operation, e)
            self.state = replace(self.state, mode=resume, credential_missing=True)
            self.open_credential_selection()
            return None
        except GenerationError as e:
            logger.exception("%s failed: %s", operation, e)
            self.state = replace(self.state, mode=resume, notice=notice or e.user_message)
            return None
        finally:
            if self.state.generating:
                self.state = replace(self.state, mode=resume)
            self._dispatch_lock.release()

    def submit_plan_request(self, request=None):
        """Generate a lesson plan from ``request`` (or the current draft).

        Returns:
            The new LessonPlan, or None when nothing was generated.
        """
        self._ensure_ready()
        request = request or self.state.draft
        self._commit(replace(self.state, draft=request))

        if self.state.credential_missing:
            self.open_credential_selection()
            return None
        if not request.topic.strip():
            raise InputValidationError("Topic is required", user_message="Informe o conteúdo da aula.")

        plan = self._generate("plan", self.client.generate_plan, request)
        if plan is None:
            return None

        history = self.store.update_history(lambda plans: prepend_plan(plans, plan))
        self._commit(
            replace(
                self.state,
                history=history,
                selection=PlanSelected(plan.id, PLAN_VIEW),
                grading_result=None,
            )
        )
        logger.info("Generated plan %s (%s)", plan.id, plan.title)
        return plan

    def request_test(self, kind):
        """Generate a test of ``kind`` for the current plan and attach it.

        Returns:
            The updated LessonPlan, or None when nothing was generated.
        """
        self._ensure_ready()
        plan = self.current_plan
        if plan is None:
            raise InputValidationError("No plan selected", user_message="Selecione um plano.")
        if kind not in TEST_KINDS:
            raise InputValidationError(f"Unknown test kind: {kind}")

        if self.state.credential_missing:
            self.open_credential_selection()
            return None

        test = self._generate("test", self.client.generate_test, plan, kind, notice=TEST_ERROR_NOTICE)
        if test is None:
            return None

        updated = plan.with_test(test)
        history = self.store.update_history(lambda plans: replace_plan(plans, updated))
        self._commit(replace(self.state, history=history))
        logger.info("Attached %s test with %d questions to plan %s", kind, len(test.questions), plan.id)
        return updated

    # --- Camera ---

    def open_camera(self, intent):
        """Open the camera for ``intent``.

        Returns:
            True when streaming, False when the device was unavailable
            (a notice is set).
        """
        self._ensure_ready()
        intent = CaptureIntent(intent)
        if self.camera is None:
            raise DeviceAccessError("No camera configured")
        if intent is CaptureIntent.GRADE_TEST:
            plan = self.current_plan
            if plan is None or plan.test is None:
                raise InputValidationError(
                    "Grading needs a plan with a test",
                    user_message="Gere uma avaliação antes de corrigir.",
                )

        try:
            self.camera.open(intent)
        except DeviceAccessError as e:
            self._commit(replace(self.state, mode=Idle(), notice=e.user_message))
            return False

        self._commit(replace(self.state, mode=Capturing(intent), grading_result=None, notice=None))
        return True

    def capture(self, frame_bytes=None):
        """Capture a frame and route it by the camera's intent.

        ``frame_bytes`` carries a browser-captured image; device sources
        read their own frame. The camera is closed afterwards, whatever
        the outcome.

        Returns:
            The extracted text or GradingResult, or None on failure.
        """
        if not isinstance(self.state.mode, Capturing):
            raise InputValidationError("Camera is not open", user_message="Abra a câmera antes de capturar.")
        intent = self.state.mode.intent
        try:
            if frame_bytes is not None:
                self.camera.deliver(frame_bytes)
            frame = self.camera.capture()
            if intent is CaptureIntent.EXTRACT_TOPIC:
                return self._apply_extracted_text(frame)
            return self._apply_grading(frame)
        except DeviceAccessError as e:
            logger.warning("Capture failed: %s", e)
            self.state = replace(self.state, notice=CAMERA_ERROR_NOTICE)
            return None
        finally:
            self.camera.close()
            self._commit(replace(self.state, mode=Idle()))

    def _apply_extracted_text(self, frame):
        text = self._generate(
            "extract-topic",
            self.client.extract_text,
            frame.data_b64,
            frame.mime_type,
            intent=CaptureIntent.EXTRACT_TOPIC,
            notice=CAMERA_ERROR_NOTICE,
        )
        if text:
            self.state = replace(self.state, draft=replace(self.state.draft, topic=text))
        return text or None

    def _apply_grading(self, frame):
        plan = self.current_plan
        if plan is None or plan.test is None:
            self.state = replace(self.state, notice=CAMERA_ERROR_NOTICE)
            return None
        result = self._generate(
            "grade-test",
            self.client.grade_test,
            frame.data_b64,
            plan.test,
            intent=CaptureIntent.GRADE_TEST,
            notice=CAMERA_ERROR_NOTICE,
        )
        if result is not None:
            self.state = replace(self.state, grading_result=result)
        return result

    def close_camera(self):
        if self.camera is not None:
            self.camera.close()
        if isinstance(self.state.mode, Capturing):
            self._commit(replace(self.state, mode=Idle()))
