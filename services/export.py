"""Plain-text rendering of coaching sessions for download, copy and email."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote
import re

from models.threads import ConversationThread
from services.threads import ConversationService
from schemas.conversations import QuestionAnswer, CoachingMessage, CoachingRole

SESSION_HEADING = "SOCRATIC THINKING SESSION"
PROBLEM_SECTION = "ORIGINAL PROBLEM"
DIALOGUE_SECTION = "REFLECTION DIALOGUE"
SUMMARY_SECTION = "INSIGHTS & SUMMARY"
ACTION_PLAN_SECTION = "ACTION PLAN"
COACHING_SECTION = "COACHING CONVERSATION"

SECTION_ORDER = [PROBLEM_SECTION, DIALOGUE_SECTION, SUMMARY_SECTION, ACTION_PLAN_SECTION, COACHING_SECTION]

SECTION_PATTERN = re.compile(
    r"^=== (ORIGINAL PROBLEM|REFLECTION DIALOGUE|INSIGHTS & SUMMARY|ACTION PLAN|COACHING CONVERSATION) ===\n",
    re.MULTILINE,
)
PAIR_PATTERN = re.compile(r"Q(\d+): (.*?)\nA\1: (.*?)\n\n(?=Q\d+: |\Z)", re.DOTALL)
COACHING_PATTERN = re.compile(r"(USER|ASSISTANT): (.*?)\n\n(?=(?:USER|ASSISTANT): |\Z)", re.DOTALL)

# Lines of user or model text that could be read as layout markers get a
# leading backslash; lines already starting with one get another.
ESCAPE_PATTERN = re.compile(r"^(?=\\|===|[QA]\d+: |(?:USER|ASSISTANT): )", re.MULTILINE)
UNESCAPE_PATTERN = re.compile(r"^\\", re.MULTILINE)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"
EMAIL_SUBJECT_PREFIX_LENGTH = 50


@dataclass
class SessionSnapshot:
    """Everything a session has accumulated so far."""
    problem: str
    questions: List[QuestionAnswer] = field(default_factory=list)
    summary: str = ""
    action_plan: str = ""
    coaching_messages: List[CoachingMessage] = field(default_factory=list)

    @classmethod
    def from_thread(cls, thread: ConversationThread) -> "SessionSnapshot":
        return cls(
            problem=thread.problem,
            questions=[QuestionAnswer(**qa) for qa in ConversationService.load_questions(thread)],
            summary=thread.summary or "",
            action_plan=thread.action_plan or "",
            coaching_messages=[
                CoachingMessage(**m) for m in ConversationService.load_coaching_messages(thread)
            ],
        )


def _section(name: str, body: str) -> str:
    return f"=== {name} ===\n{body}"


def _escape(value: str) -> str:
    return ESCAPE_PATTERN.sub(r"\\", value)


def _unescape(value: str) -> str:
    return UNESCAPE_PATTERN.sub("", value)


def _coaching_lines(messages: List[CoachingMessage], escape: bool = False) -> str:
    return "".join(
        f"{m.role.value.upper()}: {_escape(m.content) if escape else m.content}\n\n" for m in messages
    )


def _split_sections(text: str) -> Dict[str, str]:
    """Cut a rendered session into its section bodies, in the fixed section order."""
    sections = {}
    headers = list(SECTION_PATTERN.finditer(text))
    last_index = -1
    for i, header in enumerate(headers):
        index = SECTION_ORDER.index(header.group(1))
        if index <= last_index:
            raise ValueError(f"Section '{header.group(1)}' is repeated or out of order")
        last_index = index
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        sections[header.group(1)] = text[header.end():end]

    if PROBLEM_SECTION not in sections:
        raise ValueError(f"Missing '{PROBLEM_SECTION}' section")
    return sections


def _match_all(pattern: re.Pattern, body: str, section: str) -> List[re.Match]:
    """Match `pattern` back to back over the whole body."""
    matches = []
    pos = 0
    while pos < len(body):
        match = pattern.match(body, pos)
        if not match:
            raise ValueError(f"Malformed '{section}' section")
        matches.append(match)
        pos = match.end()
    return matches


class SessionExporter:
    """Renders sessions in the fixed section-header text layout and reads them back."""

    @staticmethod
    def render_session(
        session: SessionSnapshot,
        include_coaching: bool = False,
        generated_at: Optional[datetime] = None
    ) -> str:
        """
        Render the whole session. Sections with nothing in them are left out;
        the coaching chat is only included on request. Lines of content that
        look like layout markers are escaped with a leading backslash.
        """
        generated_at = generated_at or datetime.now()
        content = f"{SESSION_HEADING}\nGenerated: {generated_at.strftime(TIMESTAMP_FORMAT)}\n\n"
        content += _section(PROBLEM_SECTION, f"{_escape(session.problem)}\n\n")

        if session.questions:
            pairs = "".join(
                f"Q{i}: {_escape(qa.question)}\nA{i}: {_escape(qa.answer)}\n\n"
                for i, qa in enumerate(session.questions, start=1)
            )
            content += _section(DIALOGUE_SECTION, pairs)

        if session.summary:
            content += _section(SUMMARY_SECTION, f"{_escape(session.summary)}\n\n")

        if session.action_plan:
            content += _section(ACTION_PLAN_SECTION, f"{_escape(session.action_plan)}\n\n")

        if include_coaching and session.coaching_messages:
            content += _section(COACHING_SECTION, _coaching_lines(session.coaching_messages, escape=True))

        return content

    @staticmethod
    def parse_session(text: str) -> SessionSnapshot:
        """
        Read a rendered session back into its fields.

        Raises:
            ValueError: if the text is not in the session layout.
        """
        sections = _split_sections(text)

        def text_section(name: str) -> str:
            body = sections.get(name, "")
            return _unescape(body[:-2] if body.endswith("\n\n") else body)

        questions = []
        for match in _match_all(PAIR_PATTERN, sections.get(DIALOGUE_SECTION, ""), DIALOGUE_SECTION):
            if int(match.group(1)) != len(questions) + 1:
                raise ValueError(f"Question {match.group(1)} is out of sequence")
            questions.append(QuestionAnswer(
                question=_unescape(match.group(2)),
                answer=_unescape(match.group(3)),
            ))
        coaching = [
            CoachingMessage(role=CoachingRole(m.group(1).lower()), content=_unescape(m.group(2)))
            for m in _match_all(COACHING_PATTERN, sections.get(COACHING_SECTION, ""), COACHING_SECTION)
        ]
        return SessionSnapshot(
            problem=text_section(PROBLEM_SECTION),
            questions=questions,
            summary=text_section(SUMMARY_SECTION),
            action_plan=text_section(ACTION_PLAN_SECTION),
            coaching_messages=coaching,
        )

    @staticmethod
    def render_action_plan(session: SessionSnapshot, generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or datetime.now()
        return (
            f"ACTION PLAN\nGenerated: {generated_at.strftime(TIMESTAMP_FORMAT)}\n\n"
            f"Original Problem: {session.problem}\n\n{session.action_plan}"
        )

    @staticmethod
    def render_coaching(session: SessionSnapshot, generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or datetime.now()
        return (
            f"COACHING CONVERSATION\nGenerated: {generated_at.strftime(TIMESTAMP_FORMAT)}\n\n"
            f"Original Problem: {session.problem}\n\n{_coaching_lines(session.coaching_messages)}"
        )

    @staticmethod
    def render_share_text(session: SessionSnapshot) -> str:
        """Compact layout used for clipboard copies from the history view."""
        content = f"Problem: {session.problem}\n\n"
        if session.questions:
            content += "Key Questions & Insights:\n"
            for i, qa in enumerate(session.questions, start=1):
                content += f"{i}. {qa.question}\n   → {qa.answer}\n\n"
        if session.summary:
            content += f"Summary: {session.summary}\n\n"
        if session.action_plan:
            content += f"Action Plan: {session.action_plan}"
        return content

    @staticmethod
    def render_email_body(session: SessionSnapshot, generated_at: Optional[datetime] = None) -> str:
        generated_at = generated_at or datetime.now()
        content = "I wanted to share insights from my recent thinking session:\n\n"
        content += f"**Problem I worked through:**\n{session.problem}\n\n"
        if session.summary:
            content += f"**Key Insights:**\n{session.summary}\n\n"
        if session.action_plan:
            content += f"**My Action Plan:**\n{session.action_plan}\n\n"
        content += f"Generated through Socratic coaching on {generated_at.strftime('%B %d, %Y')}"
        return content

    @staticmethod
    def filename(kind: str, when: Optional[datetime] = None) -> str:
        """Download filename, e.g. socratic-session-2024-05-01.txt."""
        prefixes = {
            "session": "socratic-session",
            "action_plan": "action-plan",
            "coaching": "coaching-conversation",
        }
        if kind not in prefixes:
            raise ValueError(f"Unknown export kind: {kind}")
        when = when or datetime.now()
        return f"{prefixes[kind]}-{when.strftime('%Y-%m-%d')}.txt"

    @staticmethod
    def email_subject(problem: str) -> str:
        return f"Socratic Thinking Session - {problem[:EMAIL_SUBJECT_PREFIX_LENGTH]}..."

    @staticmethod
    def mailto_link(subject: str, body: str) -> str:
        """Pre-filled compose link with no recipient."""
        return f"mailto:?subject={quote(subject, safe='')}&body={quote(body, safe='')}"
