"""Prompt templates and language-model calls for the Socratic coach."""
import os
import logging
from typing import List, Optional, Sequence

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage

from schemas.conversations import QuestionAnswer, CoachingMessage

logger = logging.getLogger(__name__)

LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-20250514")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "60"))

# Output-size ceilings per operation
QUESTION_MAX_TOKENS = 200
SUMMARY_MAX_TOKENS = 600
ACTION_PLAN_MAX_TOKENS = 800
COACHING_MAX_TOKENS = 500

FALLBACK_QUESTION = "What aspect of this situation feels most important to you right now?"
FALLBACK_SUMMARY = (
    "Thank you for working through these questions. You've gained valuable insights "
    "into your situation through this reflective process."
)
FALLBACK_PLAN = "I'll help you create a structured plan to move forward with the insights you've discovered."
FALLBACK_COACHING = (
    "I understand you're working through this challenge. Can you tell me more about "
    "what specific aspect you'd like to explore?"
)
COACHING_GREETING = (
    "I'm here to help you work through your situation. I have full context of your problem "
    "and the insights you've discovered through our Socratic dialogue. What would you like "
    "to explore further or get help with?"
)


class GenerationError(Exception):
    """Raised when the language model call fails or returns nothing usable."""


def get_chat_model(max_tokens: int) -> BaseChatModel:
    """Build the chat model for one call with its output-size ceiling."""
    return init_chat_model(LLM_MODEL, max_tokens=max_tokens, timeout=LLM_TIMEOUT)


def format_dialogue(questions: Sequence[QuestionAnswer], question_label: str = "Q", answer_label: str = "A") -> str:
    return "\n\n".join(
        f"{question_label}: {qa.question}\n{answer_label}: {qa.answer}" for qa in questions
    )


def first_question_prompt(problem: str) -> str:
    return f"""You are a Socratic thinking coach. The user has described this problem: "{problem}"

Generate a thoughtful Socratic question that will help them think more clearly about their situation. The question should:
- Be open-ended and thought-provoking
- Help them examine their assumptions
- Encourage deeper reflection
- Be specific to their situation

Respond with ONLY the question, no additional text."""


def next_question_prompt(problem: str, questions: Sequence[QuestionAnswer]) -> str:
    dialogue = format_dialogue(questions, "Question", "Answer")
    return f"""You are a Socratic thinking coach. Here's the user's original problem and our conversation so far:

Original problem: "{problem}"

Conversation history:
{dialogue}

Generate the next thoughtful Socratic question that builds on their previous responses and helps them gain deeper insights.

Respond with ONLY the question, no additional text."""


def summary_prompt(problem: str, questions: Sequence[QuestionAnswer]) -> str:
    return f"""Based on this Socratic dialogue, provide insights and a summary:

Original problem: "{problem}"

Dialogue:
{format_dialogue(questions)}

Provide:
1. Key insights discovered
2. A clear summary of their situation
3. Actionable next steps or solutions if appropriate

Format your response in clear, encouraging language that helps them see their progress in thinking through this issue."""


def action_plan_prompt(problem: str, questions: Sequence[QuestionAnswer]) -> str:
    return f"""Based on this Socratic dialogue, create a detailed action plan:

Original problem: "{problem}"

Dialogue:
{format_dialogue(questions)}

Create a structured action plan with:

1. **GOAL CLARITY**: Clear objective based on their insights
2. **KEY DELIVERABLES**: 3-5 specific, actionable deliverables
3. **TIMELINE**: Realistic timeframes for each deliverable
4. **MILESTONES**: Check-in points and progress markers
5. **POTENTIAL OBSTACLES**: What might get in the way and how to handle them
6. **SUCCESS METRICS**: How they'll know they're making progress

Format this as a clear, actionable plan they can reference and follow. Use encouraging, confident language that builds on the insights they've discovered."""


def coaching_prompt(
    problem: str,
    questions: Sequence[QuestionAnswer],
    summary: Optional[str],
    coaching_messages: Sequence[CoachingMessage],
    user_message: str
) -> str:
    history = "\n".join(f"{m.role.value}: {m.content}" for m in coaching_messages)
    return f"""You are coaching someone through a problem. Here's the full context:

Original problem: "{problem}"

Socratic dialogue completed:
{format_dialogue(questions)}

Previous insights: {summary or 'No summary available yet'}

Conversation history:
{history}

User's latest message: {user_message}

Provide helpful, supportive coaching based on all this context."""


class CoachService:
    """
    Gateway to the hosted language model.

    Each operation is one round trip: no retries, no streaming and no
    caching. The whole transcript arrives with every call, so nothing is
    remembered between calls.
    """

    @staticmethod
    def _complete(prompt: str, max_tokens: int, operation: str) -> str:
        try:
            model = get_chat_model(max_tokens)
            response = model.invoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.error(f"Error generating {operation}: {e}")
            raise GenerationError(f"Failed to generate {operation}") from e

        content = response.content
        if isinstance(content, list):
            # Anthropic replies may come back as a list of content blocks
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block) for block in content
            )
        text = (content or "").strip()
        if not text:
            logger.error(f"Model returned an empty {operation}")
            raise GenerationError(f"Failed to generate {operation}")
        return text

    @staticmethod
    def generate_question(problem: str, questions: List[QuestionAnswer], is_first: bool) -> str:
        """Generate the opening question, or the next one building on the dialogue."""
        if is_first or not questions:
            prompt = first_question_prompt(problem)
        else:
            prompt = next_question_prompt(problem, questions)
        return CoachService._complete(prompt, QUESTION_MAX_TOKENS, "question")

    @staticmethod
    def generate_summary(problem: str, questions: List[QuestionAnswer]) -> str:
        return CoachService._complete(summary_prompt(problem, questions), SUMMARY_MAX_TOKENS, "summary")

    @staticmethod
    def generate_action_plan(problem: str, questions: List[QuestionAnswer]) -> str:
        """Generate a structured plan from the problem and the full dialogue."""
        return CoachService._complete(
            action_plan_prompt(problem, questions), ACTION_PLAN_MAX_TOKENS, "action plan"
        )

    @staticmethod
    def generate_coaching_reply(
        problem: str,
        questions: List[QuestionAnswer],
        summary: Optional[str],
        coaching_messages: List[CoachingMessage],
        user_message: str
    ) -> str:
        prompt = coaching_prompt(problem, questions, summary, coaching_messages, user_message)
        return CoachService._complete(prompt, COACHING_MAX_TOKENS, "coaching response")
