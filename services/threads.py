"""Conversation service for thread CRUD and the save/upsert contract."""
from typing import Optional, List, Dict, Any
import json
import logging

from sqlalchemy.orm import Session
from sqlalchemy import desc, func, or_

from models.threads import ConversationThread, ThreadStatus, utcnow
from models.messages import ConversationMessage, MessageType
from schemas.conversations import ThreadResponse, ThreadDetailResponse, ThreadUpdate, MessageResponse
from dtos.conversation_request import SaveConversationRequest

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
UNTITLED = "Untitled session"


class ConversationConflictError(Exception):
    """Raised when a save would edit or reorder already stored entries."""


class ConversationService:
    """Service class for conversation thread operations."""

    @staticmethod
    def derive_title(problem: str) -> str:
        """Build a short label from the first line of the problem text."""
        lines = [line for line in (problem or "").strip().splitlines() if line.strip()]
        if not lines:
            return UNTITLED
        first_line = " ".join(lines[0].split())
        if len(first_line) > TITLE_MAX_LENGTH:
            return first_line[:TITLE_MAX_LENGTH].rstrip() + "..."
        return first_line

    @staticmethod
    def load_questions(thread: ConversationThread) -> List[Dict[str, Any]]:
        return json.loads(thread.questions or "[]")

    @staticmethod
    def load_coaching_messages(thread: ConversationThread) -> List[Dict[str, Any]]:
        return json.loads(thread.coaching_messages or "[]")

    @staticmethod
    def to_response(thread: ConversationThread) -> ThreadResponse:
        return ThreadResponse(
            id=thread.id,
            user_id=thread.user_id,
            title=thread.title,
            problem=thread.problem,
            questions=ConversationService.load_questions(thread),
            summary=thread.summary,
            action_plan=thread.action_plan,
            coaching_messages=ConversationService.load_coaching_messages(thread),
            status=thread.status,
            created_at=thread.created_at,
            updated_at=thread.updated_at,
        )

    @staticmethod
    def to_detail_response(db: Session, thread: ConversationThread) -> ThreadDetailResponse:
        base = ConversationService.to_response(thread)
        messages = ConversationService.get_thread_messages(db, thread.id)
        return ThreadDetailResponse(
            **base.model_dump(),
            messages=[MessageResponse.model_validate(m) for m in messages],
        )

    @staticmethod
    def get_thread(db: Session, thread_id: str, user_id: Optional[str]) -> Optional[ConversationThread]:
        """Retrieve a thread by ID, scoped to its owner. Anonymous threads have no owner."""
        query = db.query(ConversationThread).filter(
            ConversationThread.id == thread_id,
            ConversationThread.user_id.is_(None) if user_id is None else ConversationThread.user_id == user_id,
        )

        return query.first()

    @staticmethod
    def get_user_threads(db: Session, user_id: str, search: Optional[str] = None) -> List[ConversationThread]:
        """Retrieve all threads for a user, most recently updated first."""
        query = db.query(ConversationThread).filter(ConversationThread.user_id == user_id)

        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(ConversationThread.problem).like(pattern),
                func.lower(func.coalesce(ConversationThread.summary, "")).like(pattern),
            ))

        return query.order_by(desc(ConversationThread.updated_at)).all()

    @staticmethod
    def get_thread_messages(db: Session, thread_id: str) -> List[ConversationMessage]:
        return db.query(ConversationMessage).filter(
            ConversationMessage.thread_id == thread_id
        ).order_by(ConversationMessage.position).all()

    @staticmethod
    def add_message(
        db: Session,
        thread_id: str,
        message_type: MessageType,
        content: str,
        metadata: Optional[dict] = None
    ) -> ConversationMessage:
        """Append a turn to a thread. The caller commits."""
        position = db.query(func.count(ConversationMessage.id)).filter(
            ConversationMessage.thread_id == thread_id
        ).scalar()

        message = ConversationMessage(
            thread_id=thread_id,
            type=message_type,
            position=position,
            content=content,
            message_metadata=metadata,
        )
        db.add(message)
        db.flush()
        return message

    @staticmethod
    def save_conversation(
        db: Session,
        user_id: Optional[str],
        data: SaveConversationRequest
    ) -> Optional[ConversationThread]:
        """
        Create or update a thread from the client's full session state.

        Without a thread id a new row is created. With one, the existing row
        is rewritten, provided the stored question/answer pairs and coaching
        messages are an unchanged prefix of the incoming ones. Entries that
        are new relative to the stored row are also appended as messages.

        Returns:
            The saved thread, or None if the thread id is unknown to this user.

        Raises:
            ConversationConflictError: if stored entries were edited, removed
                or reordered.
        """
        questions = [qa.model_dump(mode="json") for qa in data.questions]
        coaching = [m.model_dump(mode="json") for m in data.coaching_messages]

        if data.thread_id:
            thread = ConversationService.get_thread(db, data.thread_id, user_id)
            if not thread:
                return None
            stored_questions = ConversationService.load_questions(thread)
            stored_coaching = ConversationService.load_coaching_messages(thread)
            if questions[:len(stored_questions)] != stored_questions:
                raise ConversationConflictError("Stored questions cannot be edited or reordered")
            if coaching[:len(stored_coaching)] != stored_coaching:
                raise ConversationConflictError("Stored coaching messages cannot be edited or reordered")
        else:
            thread = ConversationThread(
                user_id=user_id,
                title=ConversationService.derive_title(data.problem),
                problem=data.problem,
                status=ThreadStatus.ACTIVE,
            )
            db.add(thread)
            db.flush()
            stored_questions, stored_coaching = [], []

        if thread.problem != data.problem:
            thread.problem = data.problem
            thread.title = ConversationService.derive_title(data.problem)

        for index in range(len(stored_questions), len(questions)):
            pair = questions[index]
            ConversationService.add_message(db, thread.id, MessageType.QUESTION, pair["question"], {"index": index})
            ConversationService.add_message(db, thread.id, MessageType.ANSWER, pair["answer"], {"index": index})

        if data.summary and data.summary != thread.summary:
            ConversationService.add_message(db, thread.id, MessageType.SUMMARY, data.summary)
            thread.summary = data.summary

        if data.action_plan and data.action_plan != thread.action_plan:
            ConversationService.add_message(db, thread.id, MessageType.ACTION_PLAN, data.action_plan)
            thread.action_plan = data.action_plan

        for message in coaching[len(stored_coaching):]:
            ConversationService.add_message(
                db, thread.id, MessageType.COACHING, message["content"], {"role": message["role"]}
            )

        thread.questions = json.dumps(questions)
        thread.coaching_messages = json.dumps(coaching)
        if thread.action_plan and thread.status == ThreadStatus.ACTIVE:
            thread.status = ThreadStatus.COMPLETED
        thread.updated_at = utcnow()

        db.commit()
        db.refresh(thread)

        logger.info(f"Saved thread {thread.id} ({len(questions)} questions, {len(coaching)} coaching messages)")
        return thread

    @staticmethod
    def update_thread(
        db: Session,
        thread_id: str,
        user_id: str,
        thread_update: ThreadUpdate
    ) -> Optional[ConversationThread]:
        """Rename or change the status of a thread."""
        thread = ConversationService.get_thread(db, thread_id, user_id)

        if not thread:
            return None

        if thread_update.title is not None:
            thread.title = thread_update.title

        if thread_update.status is not None:
            thread.status = thread_update.status

        thread.updated_at = utcnow()
        db.commit()
        db.refresh(thread)

        return thread

    @staticmethod
    def delete_thread(db: Session, thread_id: str, user_id: str) -> bool:
        """Delete a thread and, before it, all of its messages."""
        thread = ConversationService.get_thread(db, thread_id, user_id)

        if not thread:
            return False

        db.query(ConversationMessage).filter(
            ConversationMessage.thread_id == thread_id
        ).delete(synchronize_session=False)
        db.query(ConversationThread).filter(
            ConversationThread.id == thread_id
        ).delete(synchronize_session=False)
        db.commit()

        logger.info(f"Deleted thread {thread_id}")
        return True
