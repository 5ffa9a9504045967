"""
CHANGESCRIBE Controller — The Confirm Loop

It is NOT smart. It is deterministic.

Pipeline:
  COLLECTING → CLASSIFYING → MERGING → SYNTHESIZING → AWAITING_CONFIRMATION
    → (EDITING → SYNTHESIZING)* → SUBMITTING → SUBMITTED | ABORTED | FAILED

Responsibilities:
  - Check preconditions once, before any synthesis
  - Collect history and resolve the ticket
  - Classify once per run; edits only re-merge and re-render
  - Hold the current draft and the one before it (for undo), nothing more
  - Hand the approved draft to the submitter
  - Keep the draft when submission fails so it can be retried

It never talks to git or gh directly. It only coordinates.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from loguru import logger
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt

from changescribe.classifier import classify
from changescribe.config_loader import ChangeScribeConfig
from changescribe.errors import ErrorKind, HistoryUnavailableError, ScribeError, SubmissionFailedError
from changescribe.event_bus import EventBus, ScribeEvent
from changescribe.history import HistorySource
from changescribe.merger import how_included, merge_context, parse_edit
from changescribe.models import (
    ClassificationSignals,
    CommitRecord,
    DiffStat,
    DraftPR,
    OperatorContext,
    RunOutcome,
    RunState,
    TicketRef,
)
from changescribe.submission import Submitter, ensure_feature_branch
from changescribe.synthesizer import synthesize
from changescribe.tickets import extract_ticket, generic_ticket, infer_ticket


# ---------------------------------------------------------------------------
# Operator boundary
# ---------------------------------------------------------------------------

class DecisionKind(str, Enum):
    APPROVE = "approve"
    EDIT = "edit"
    UNDO = "undo"
    DECLINE = "decline"


class Decision(BaseModel):
    kind: DecisionKind
    text: str = ""

    @classmethod
    def approve(cls) -> "Decision":
        return cls(kind=DecisionKind.APPROVE)

    @classmethod
    def edit(cls, text: str) -> "Decision":
        return cls(kind=DecisionKind.EDIT, text=text)

    @classmethod
    def undo(cls) -> "Decision":
        return cls(kind=DecisionKind.UNDO)

    @classmethod
    def decline(cls) -> "Decision":
        return cls(kind=DecisionKind.DECLINE)


class Operator(Protocol):
    def present(self, draft: DraftPR) -> None: ...

    def decide(self, draft: DraftPR, can_undo: bool) -> Decision: ...

    def confirm_ticket(self, ticket: TicketRef) -> bool: ...

    def resolve_missing_ticket(self) -> str | None: ...


class ConsoleOperator:
    """The human at the terminal."""

    _CHOICES = {"a": DecisionKind.APPROVE, "e": DecisionKind.EDIT, "u": DecisionKind.UNDO, "d": DecisionKind.DECLINE}

    def __init__(self, console: Console | None = None, auto_approve: bool = False):
        self.console = console or Console()
        self.auto_approve = auto_approve

    def present(self, draft: DraftPR) -> None:
        self.console.print(Panel(
            escape(draft.body.rstrip()),
            title=f"[bold]{escape(draft.title)}[/]",
            subtitle=f"→ {draft.base}",
            border_style="cyan",
        ))

    def decide(self, draft: DraftPR, can_undo: bool) -> Decision:
        if self.auto_approve:
            return Decision.approve()

        choices = ["a", "e", "u", "d"] if can_undo else ["a", "e", "d"]
        hint = "[a]pprove / [e]dit / [u]ndo / [d]ecline" if can_undo else "[a]pprove / [e]dit / [d]ecline"
        answer = Prompt.ask(f"[bold]{hint}[/]", choices=choices, default="a", console=self.console)
        kind = self._CHOICES[answer]
        if kind is DecisionKind.EDIT:
            return Decision.edit(self._read_edit())
        return Decision(kind=kind)

    def confirm_ticket(self, ticket: TicketRef) -> bool:
        if self.auto_approve:
            return True
        return Confirm.ask(
            f"Use ticket [bold]{escape(ticket.display_prefix)}[/] found in the branch or commits?",
            default=True,
            console=self.console,
        )

    def resolve_missing_ticket(self) -> str | None:
        if self.auto_approve:
            return None
        if Confirm.ask(
            "[yellow]No ticket reference found.[/] Proceed without a ticket prefix?",
            default=True,
            console=self.console,
        ):
            return None
        return Prompt.ask("Ticket URL or key", console=self.console).strip() or None

    def _read_edit(self) -> str:
        self.console.print(
            "[dim]Add narrative or corrections. Prefix lines with why:/what:/how:/testing: "
            "to target a section; unlabeled text goes to Why. Finish with an empty line.[/]"
        )
        lines = []
        while True:
            line = self.console.input("[dim]> [/]")
            if not line.strip():
                break
            lines.append(line)
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class Controller:
    """
    Drives one change-description request from history to pull request.

    One instance per run: signals, contexts and drafts are never shared,
    so concurrent runs on different branches cannot see each other.
    """

    def __init__(
        self,
        history: HistorySource,
        submitter: Submitter | None,
        operator: Operator,
        config: ChangeScribeConfig | None = None,
        bus: EventBus | None = None,
    ):
        self.history = history
        self.submitter = submitter
        self.operator = operator
        self.config = config or ChangeScribeConfig()
        self.bus = bus or EventBus()

        self.state: RunState | None = None
        self.branch: str | None = None
        self.ticket: TicketRef | None = None
        self.signals: ClassificationSignals | None = None
        self.draft: DraftPR | None = None
        self.context = OperatorContext()

        self._commits: list[CommitRecord] = []
        self._diff = DiffStat()
        self._previous: tuple[DraftPR, OperatorContext] | None = None
        self._needs_push = False
        self._last_error: ScribeError | None = None

    @property
    def base(self) -> str:
        return self.config.submit.base_branch

    # -----------------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------------

    def prepare(
        self,
        operator_context: OperatorContext | None = None,
        ticket_input: str | None = None,
        check_preconditions: bool = True,
    ) -> DraftPR:
        """Run COLLECTING through SYNTHESIZING and return the first draft."""
        self.context = operator_context or OperatorContext()
        self._transition(RunState.COLLECTING)

        self.branch = self.history.current_branch()
        ensure_feature_branch(self.branch, self.base)
        if check_preconditions:
            if self.submitter is None:
                raise ValueError("preconditions need a submitter")
            self.submitter.check_preconditions(self.branch, self.base)

        self._commits = list(self.history.list_commits(self.base))
        if not self._commits:
            raise HistoryUnavailableError(f"no commits on '{self.branch}' since '{self.base}'")
        self._diff = self.history.diff_stat(self.base)
        if check_preconditions:
            self._needs_push = self.history.has_unpushed_commits()

        self.ticket = self._resolve_ticket(ticket_input)

        self._transition(RunState.CLASSIFYING)
        self.signals = classify(self._commits, self._diff)
        logger.debug(
            f"[CONTROLLER] {self.signals.dominant_type.value} / {self.signals.complexity.value} "
            f"dep={self.signals.has_new_dependency} breaking={self.signals.has_breaking_signal} "
            f"tests={self.signals.has_tests}"
        )

        self._transition(RunState.MERGING)
        self.draft = self._render()
        return self.draft

    def run(
        self,
        operator_context: OperatorContext | None = None,
        ticket_input: str | None = None,
    ) -> RunOutcome:
        """Full run: preconditions, synthesis, confirm loop, submission."""
        if self.submitter is None:
            raise ValueError("run() needs a submitter; use prepare() for previews")

        try:
            self.prepare(operator_context, ticket_input)
        except ScribeError as e:
            return self._fail(e)

        while True:
            self._transition(RunState.AWAITING_CONFIRMATION)
            self.operator.present(self.draft)
            decision = self.operator.decide(self.draft, can_undo=self._previous is not None)

            if decision.kind is DecisionKind.APPROVE:
                break
            if decision.kind is DecisionKind.DECLINE:
                self._transition(RunState.ABORTED)
                return RunOutcome(state=RunState.ABORTED, draft=self.draft)
            if decision.kind is DecisionKind.UNDO:
                self._undo()
                continue
            self._edit(decision.text)

        return self._submit()

    def retry_submission(self) -> RunOutcome:
        """Submit the preserved draft again after a SUBMISSION_FAILED run."""
        if (
            self.state is not RunState.FAILED
            or self.draft is None
            or not isinstance(self._last_error, SubmissionFailedError)
        ):
            raise RuntimeError("only a run that failed during submission can be retried")
        return self._submit()

    # -----------------------------------------------------------------------
    # Steps
    # -----------------------------------------------------------------------

    def _resolve_ticket(self, ticket_input: str | None) -> TicketRef | None:
        ticket = extract_ticket(ticket_input)
        if ticket is None:
            ticket = self._inferred_ticket()
        if ticket is None and self.config.intervention.confirm_missing_ticket:
            answer = self.operator.resolve_missing_ticket()
            if answer:
                ticket = extract_ticket(answer) or generic_ticket(answer)
        if ticket is None:
            logger.info("[CONTROLLER] Proceeding without a ticket prefix")
        return ticket

    def _inferred_ticket(self) -> TicketRef | None:
        ticket = infer_ticket(self.branch, self._commits)
        if ticket is None or not self.config.intervention.confirm_inferred_ticket:
            return ticket
        if self.operator.confirm_ticket(ticket):
            return ticket
        logger.info(f"[CONTROLLER] Inferred ticket {ticket.display_prefix} rejected")
        return None

    def _render(self) -> DraftPR:
        merged = merge_context(self.signals, self._commits, self._diff, self.context)
        if self.context.provided("how") and not how_included(self.signals):
            logger.warning("[CONTROLLER] How section omitted: change is trivial, no dependency or breaking signal")
        self._transition(RunState.SYNTHESIZING)
        return synthesize(merged, self.ticket, self.base)

    def _edit(self, text: str) -> None:
        self._transition(RunState.EDITING)
        edit = parse_edit(text)
        if edit.empty:
            logger.warning("[CONTROLLER] Empty edit ignored")
            return
        self._previous = (self.draft, self.context)
        self.context = self.context.updated(edit)
        self.draft = self._render()

    def _undo(self) -> None:
        if self._previous is None:
            logger.warning("[CONTROLLER] Nothing to undo")
            return
        self.draft, self.context = self._previous
        self._previous = None

    def _submit(self) -> RunOutcome:
        self._transition(RunState.SUBMITTING)
        try:
            result = self.submitter.submit(self.draft, push=self._needs_push)
        except SubmissionFailedError as e:
            return self._fail(e)
        self._needs_push = False
        self._last_error = None
        self._transition(RunState.SUBMITTED, url=result.url)
        return RunOutcome(state=RunState.SUBMITTED, draft=self.draft, result=result)

    def _fail(self, error: ScribeError) -> RunOutcome:
        self._last_error = error
        logger.error(f"[CONTROLLER] {error}")
        self._transition(RunState.FAILED, error_kind=error.kind)
        return RunOutcome(
            state=RunState.FAILED,
            draft=self.draft,
            error_kind=error.kind.value,
            error_reason=error.reason,
        )

    def _transition(
        self,
        state: RunState,
        error_kind: ErrorKind | None = None,
        url: str | None = None,
    ) -> None:
        previous = self.state
        self.state = state
        logger.debug(f"[CONTROLLER] {previous.value if previous else 'start'} → {state.value}")
        self.bus.emit(ScribeEvent(
            branch=self.branch,
            from_state=previous,
            to_state=state,
            ticket=self.ticket.display_prefix if self.ticket else None,
            error_kind=error_kind,
            url=url,
        ))
