"""
Client-side driver for a Socratic coaching session.

CoachSession walks a user through the five stages of a session
(initial, questioning, summary, actionplan, coaching) and holds the whole
transcript; the backend keeps nothing between calls. CoachClient is the
HTTP gateway it talks to.
"""
from dataclasses import dataclass
from typing import List, Optional, Set, Callable, Any
import enum
import os
import logging

import httpx

from schemas.conversations import QuestionAnswer, CoachingMessage, CoachingRole
from services.coach import (
    FALLBACK_QUESTION, FALLBACK_SUMMARY, FALLBACK_PLAN, FALLBACK_COACHING, COACHING_GREETING
)
from services.export import SessionExporter, SessionSnapshot

logger = logging.getLogger(__name__)

COACH_API_URL = os.getenv("COACH_API_URL", "http://localhost:8000")

MIN_PROBLEM_LENGTH = 20
MAX_QUESTIONS = 6


class Stage(str, enum.Enum):
    INITIAL = "initial"
    QUESTIONING = "questioning"
    SUMMARY = "summary"
    ACTIONPLAN = "actionplan"
    COACHING = "coaching"


class SessionError(Exception):
    """Raised when an action is not allowed in the current stage."""


@dataclass
class GenerationResult:
    text: str
    fallback: bool = False


class CoachClient:
    """
    HTTP gateway to the coaching backend.

    Generation calls never raise: a `{error, fallback*}` response or a
    transport failure turns into the fallback text, flagged as such.
    """

    def __init__(self, base_url: str = COACH_API_URL, http_client: Optional[httpx.Client] = None):
        self.http = http_client or httpx.Client(base_url=base_url)

    def _generate(self, path: str, payload: dict, key: str, fallback_key: str, fallback: str) -> GenerationResult:
        try:
            response = self.http.post(path, json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Request to {path} failed: {e}")
            return GenerationResult(text=fallback, fallback=True)

        if response.is_success and data.get(key):
            return GenerationResult(text=data[key])

        logger.error(f"{path} returned {response.status_code}: {data.get('error')}")
        return GenerationResult(text=data.get(fallback_key) or fallback, fallback=True)

    @staticmethod
    def _dump(items: List[Any]) -> List[dict]:
        return [item.model_dump(mode="json", by_alias=True) for item in items]

    def generate_question(self, problem: str, questions: List[QuestionAnswer], is_first: bool) -> GenerationResult:
        return self._generate(
            "/api/generate-question",
            {"problem": problem, "questions": self._dump(questions), "isFirst": is_first},
            "question", "fallbackQuestion", FALLBACK_QUESTION,
        )

    def generate_summary(self, problem: str, questions: List[QuestionAnswer]) -> GenerationResult:
        return self._generate(
            "/api/generate-summary",
            {"problem": problem, "questions": self._dump(questions)},
            "summary", "fallbackSummary", FALLBACK_SUMMARY,
        )

    def generate_action_plan(self, problem: str, questions: List[QuestionAnswer]) -> GenerationResult:
        return self._generate(
            "/api/generate-action-plan",
            {"problem": problem, "questions": self._dump(questions)},
            "actionPlan", "fallbackPlan", FALLBACK_PLAN,
        )

    def coaching_reply(
        self,
        problem: str,
        questions: List[QuestionAnswer],
        summary: str,
        coaching_messages: List[CoachingMessage],
        user_message: str
    ) -> GenerationResult:
        return self._generate(
            "/api/coaching-chat",
            {
                "problem": problem,
                "questions": self._dump(questions),
                "summary": summary,
                "coachingMessages": self._dump(coaching_messages),
                "userMessage": user_message,
            },
            "response", "fallbackResponse", FALLBACK_COACHING,
        )

    def save_conversation(self, thread_id: Optional[str], session: SessionSnapshot) -> str:
        """Upsert the session; returns the thread id. Raises on failure."""
        payload = {
            "threadId": thread_id,
            "problem": session.problem,
            "questions": self._dump(session.questions),
            "summary": session.summary or None,
            "actionPlan": session.action_plan or None,
            "coachingMessages": self._dump(session.coaching_messages),
        }
        response = self.http.post("/api/conversations", json=payload)
        response.raise_for_status()
        return response.json()["threadId"]


class CoachSession:
    """
    State machine for one coaching session.

    Every generation failure degrades to the stage's fallback text and the
    session still moves on; `fallback_stages` records where that happened.
    With `autosave=True` the session upserts itself after each significant
    change; failures there are logged and otherwise ignored.
    """

    def __init__(self, client: CoachClient, autosave: bool = False):
        self.client = client
        self.autosave_enabled = autosave
        self._busy = False
        self._reset_state()

    def _reset_state(self) -> None:
        self.stage = Stage.INITIAL
        self.problem = ""
        self.questions: List[QuestionAnswer] = []
        self.current_question = ""
        self.summary = ""
        self.action_plan = ""
        self.coaching_messages: List[CoachingMessage] = []
        self.thread_id: Optional[str] = None
        self.fallback_stages: Set[Stage] = set()

    @property
    def is_loading(self) -> bool:
        return self._busy

    def _single_flight(self, call: Callable[[], GenerationResult]) -> GenerationResult:
        if self._busy:
            raise SessionError("A request is already in progress")
        self._busy = True
        try:
            return call()
        finally:
            self._busy = False

    def _require_stage(self, *stages: Stage) -> None:
        if self.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise SessionError(f"Not allowed in stage '{self.stage.value}' (expected {allowed})")

    def _record(self, stage: Stage, result: GenerationResult) -> str:
        if result.fallback:
            self.fallback_stages.add(stage)
        return result.text

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            problem=self.problem,
            questions=list(self.questions),
            summary=self.summary,
            action_plan=self.action_plan,
            coaching_messages=list(self.coaching_messages),
        )

    def can_start(self) -> bool:
        return len(self.problem) >= MIN_PROBLEM_LENGTH and not self._busy

    def start(self, problem: Optional[str] = None, from_upload: bool = False) -> str:
        """
        Leave the initial stage and fetch the opening question.

        Text that came from a document upload or speech transcription may
        start the session at any non-empty length.
        """
        self._require_stage(Stage.INITIAL)
        if problem is not None:
            self.problem = problem
        if from_upload:
            if not self.problem.strip():
                raise SessionError("The uploaded text is empty")
        elif not self.can_start():
            raise SessionError(f"Describe the problem in at least {MIN_PROBLEM_LENGTH} characters")

        result = self._single_flight(
            lambda: self.client.generate_question(self.problem, self.questions, True)
        )
        self.current_question = self._record(Stage.QUESTIONING, result)
        self.stage = Stage.QUESTIONING
        return self.current_question

    def submit_answer(self, answer: str) -> Stage:
        """Record an answer, then fetch the next question or the summary."""
        self._require_stage(Stage.QUESTIONING)
        if not answer.strip():
            raise SessionError("Answer cannot be empty")
        if self._busy:
            raise SessionError("A request is already in progress")

        self.questions.append(QuestionAnswer(question=self.current_question, answer=answer))
        self.current_question = ""

        if len(self.questions) >= MAX_QUESTIONS:
            result = self._single_flight(
                lambda: self.client.generate_summary(self.problem, self.questions)
            )
            self.summary = self._record(Stage.SUMMARY, result)
            self.stage = Stage.SUMMARY
        else:
            result = self._single_flight(
                lambda: self.client.generate_question(self.problem, self.questions, False)
            )
            self.current_question = self._record(Stage.QUESTIONING, result)

        self.autosave()
        return self.stage

    def generate_action_plan(self) -> str:
        """Build the action plan from the problem and the dialogue."""
        self._require_stage(Stage.SUMMARY, Stage.ACTIONPLAN, Stage.COACHING)
        result = self._single_flight(
            lambda: self.client.generate_action_plan(self.problem, self.questions)
        )
        self.action_plan = self._record(Stage.ACTIONPLAN, result)
        self.stage = Stage.ACTIONPLAN
        self.autosave()
        return self.action_plan

    def start_coaching(self) -> None:
        self._require_stage(Stage.SUMMARY, Stage.ACTIONPLAN)
        self.coaching_messages = [CoachingMessage(role=CoachingRole.ASSISTANT, content=COACHING_GREETING)]
        self.stage = Stage.COACHING
        self.autosave()

    def send_coaching_message(self, text: str) -> str:
        """Send one chat message; the user's message is kept even if the reply fails."""
        self._require_stage(Stage.COACHING)
        if not text.strip():
            raise SessionError("Message cannot be empty")
        if self._busy:
            raise SessionError("A request is already in progress")

        history = list(self.coaching_messages)
        self.coaching_messages.append(CoachingMessage(role=CoachingRole.USER, content=text))

        result = self._single_flight(
            lambda: self.client.coaching_reply(self.problem, self.questions, self.summary, history, text)
        )
        reply = self._record(Stage.COACHING, result)
        self.coaching_messages.append(CoachingMessage(role=CoachingRole.ASSISTANT, content=reply))
        self.autosave()
        return reply

    def reset(self) -> None:
        """Back to a blank initial stage, forgetting the saved thread."""
        self._reset_state()

    def should_persist(self) -> bool:
        return bool(self.questions or self.summary or self.action_plan or self.coaching_messages)

    def autosave(self) -> Optional[str]:
        """Fire-and-forget upsert of the current session. Failures are logged, never raised."""
        if not self.autosave_enabled or not self.should_persist():
            return None
        try:
            self.thread_id = self.client.save_conversation(self.thread_id, self.snapshot())
        except Exception as e:
            logger.warning(f"Auto-save failed: {e!r}")
            return None
        return self.thread_id

    def export_text(self, include_coaching: Optional[bool] = None) -> str:
        if include_coaching is None:
            include_coaching = self.stage == Stage.COACHING
        return SessionExporter.render_session(self.snapshot(), include_coaching=include_coaching)
