from fastapi import FastAPI, Depends, HTTPException, Query, Request, status, UploadFile, File
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import os
import shutil
import tempfile
from typing import List, Optional
import logging

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Local imports
from database import get_db, engine
from models import Base, User
from schemas import (
    ThreadResponse, ThreadDetailResponse, ThreadUpdate, ConversationSaved,
    UserResponse, DocumentExtractionResponse, AllowedFileTypes,
    QuestionResponse, SummaryResponse, ActionPlanResponse, CoachingResponse,
    EmailRequest, EmailResponse,
)
from dtos.generation import (
    GenerateQuestionRequest, GenerateSummaryRequest, GenerateActionPlanRequest, CoachingChatRequest
)
from dtos.conversation_request import SaveConversationRequest
from services import (
    ConversationService, ConversationConflictError, AuthService,
    DocumentService, DocumentProcessingError, CoachService, GenerationError,
    SessionExporter, SessionSnapshot, EmailService,
)
from services.auth import SESSION_COOKIE_NAME
from services.coach import FALLBACK_QUESTION, FALLBACK_SUMMARY, FALLBACK_PLAN, FALLBACK_COACHING
from services.documents import MAX_FILE_SIZE
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables if they don't exist
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")

    yield


app = FastAPI(
    title="Socratic Coach API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins != ["*"] else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
    max_age=3600
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def error_response(status_code: int, message: str, **fallback) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **fallback})


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "socratic-coach"}


# Identity-provider session: cookie for the web client, bearer token for mobile
bearer_scheme = HTTPBearer(auto_error=False)


def _session_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token and credentials is not None:
        token = credentials.credentials
    return token


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the signed-in user from the identity provider's session."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )

    token = _session_token(request, credentials)
    if not token:
        raise credentials_exception

    claims = AuthService.decode_session(token)
    if claims is None:
        raise credentials_exception

    return AuthService.upsert_user(db, claims)


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> Optional[User]:
    token = _session_token(request, credentials)
    claims = AuthService.decode_session(token) if token else None
    return AuthService.upsert_user(db, claims) if claims else None


@app.get("/api/auth/user", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Get the signed-in user's profile."""
    return UserResponse.model_validate(current_user)


# Prompt-template endpoints. Plain `def` so the blocking model call runs in
# the threadpool instead of on the event loop.
@app.post("/api/generate-question", response_model=QuestionResponse)
def generate_question(req: GenerateQuestionRequest):
    """Generate the first or the next Socratic question."""
    if not req.problem:
        return error_response(status.HTTP_400_BAD_REQUEST, "Problem description is required")

    try:
        question = CoachService.generate_question(req.problem, req.questions, req.is_first)
    except GenerationError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to generate question",
            fallbackQuestion=FALLBACK_QUESTION
        )

    return QuestionResponse(question=question)


@app.post("/api/generate-summary", response_model=SummaryResponse)
def generate_summary(req: GenerateSummaryRequest):
    """Summarize the insights of a finished dialogue."""
    if not req.problem or req.questions is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "Problem and questions are required")

    try:
        summary = CoachService.generate_summary(req.problem, req.questions)
    except GenerationError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to generate summary",
            fallbackSummary=FALLBACK_SUMMARY
        )

    return SummaryResponse(summary=summary)


@app.post("/api/generate-action-plan", response_model=ActionPlanResponse)
def generate_action_plan(req: GenerateActionPlanRequest):
    """Build a structured action plan from the problem and the dialogue."""
    if not req.problem or req.questions is None:
        return error_response(status.HTTP_400_BAD_REQUEST, "Problem and questions are required")

    try:
        action_plan = CoachService.generate_action_plan(req.problem, req.questions)
    except GenerationError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to generate action plan",
            fallbackPlan=FALLBACK_PLAN
        )

    return ActionPlanResponse(action_plan=action_plan)


@app.post("/api/coaching-chat", response_model=CoachingResponse)
def coaching_chat(req: CoachingChatRequest):
    """Reply to one coaching message with the full session as context."""
    if not req.problem or not req.user_message:
        return error_response(status.HTTP_400_BAD_REQUEST, "Problem and user message are required")

    try:
        reply = CoachService.generate_coaching_reply(
            problem=req.problem,
            questions=req.questions,
            summary=req.summary,
            coaching_messages=req.coaching_messages,
            user_message=req.user_message
        )
    except GenerationError:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Failed to generate coaching response",
            fallbackResponse=FALLBACK_COACHING
        )

    return CoachingResponse(response=reply)


# Document upload
@app.get("/api/upload-document/allowed-types", response_model=AllowedFileTypes)
async def get_allowed_file_types() -> AllowedFileTypes:
    """Get the file types and limits accepted by the upload endpoint."""
    return AllowedFileTypes()


@app.post("/api/upload-document", response_model=DocumentExtractionResponse)
async def upload_document(file: UploadFile = File(...)):
    """
    Extract the text of an uploaded document to seed the problem description.

    Allowed file types: .txt, .pdf, .doc, .docx
    Maximum file size: 5MB
    """
    if file.size is not None and file.size > MAX_FILE_SIZE:
        await file.close()
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            f"File size exceeds maximum allowed size of {MAX_FILE_SIZE // 1024 // 1024}MB"
        )

    suffix = os.path.splitext(file.filename or "")[1]
    fd, temp_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as temp_file:
            shutil.copyfileobj(file.file, temp_file)

        result = DocumentService.process_upload(temp_path, file.filename, file.content_type)
    except DocumentProcessingError as e:
        return error_response(e.status_code, e.message)
    finally:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        await file.close()

    return DocumentExtractionResponse(
        content=result.content,
        original_length=result.original_length,
        truncated=result.truncated
    )


# Conversation endpoints
@app.post("/api/conversations", response_model=ConversationSaved)
async def save_conversation(
    req: SaveConversationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ConversationSaved:
    """Create a thread, or update it when a thread id is given."""
    if not req.problem:
        return error_response(status.HTTP_400_BAD_REQUEST, "Problem is required")

    try:
        thread = ConversationService.save_conversation(db=db, user_id=current_user.id, data=req)
    except ConversationConflictError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving conversation: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to save conversation")

    if not thread:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationSaved(thread_id=thread.id)


@app.get("/api/conversations", response_model=List[ThreadResponse])
async def list_conversations(
    q: Optional[str] = Query(None, description="Filter on problem or summary text"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[ThreadResponse]:
    """List all threads for the authenticated user."""
    threads = ConversationService.get_user_threads(db=db, user_id=current_user.id, search=q)

    return [ConversationService.to_response(thread) for thread in threads]


@app.get("/api/conversations/{thread_id}", response_model=ThreadDetailResponse)
async def get_conversation(
    thread_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ThreadDetailResponse:
    """Get a thread together with its individual turns."""
    thread = ConversationService.get_thread(db=db, thread_id=thread_id, user_id=current_user.id)

    if not thread:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationService.to_detail_response(db, thread)


@app.patch("/api/conversations/{thread_id}", response_model=ThreadResponse)
async def update_conversation(
    thread_id: str,
    thread_update: ThreadUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ThreadResponse:
    """Rename or archive a thread."""
    updated_thread = ConversationService.update_thread(
        db=db,
        thread_id=thread_id,
        user_id=current_user.id,
        thread_update=thread_update
    )

    if not updated_thread:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return ConversationService.to_response(updated_thread)


@app.delete("/api/conversations/{thread_id}")
async def delete_conversation(
    thread_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> dict:
    """Delete a thread and all of its messages."""
    try:
        deleted = ConversationService.delete_thread(db=db, thread_id=thread_id, user_id=current_user.id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting conversation {thread_id}: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete conversation")

    if not deleted:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {"message": "Conversation deleted successfully"}


@app.get("/api/conversations/{thread_id}/export", response_class=PlainTextResponse)
async def export_conversation(
    thread_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> PlainTextResponse:
    """Download a stored thread as a plain-text session, coaching included."""
    thread = ConversationService.get_thread(db=db, thread_id=thread_id, user_id=current_user.id)

    if not thread:
        raise HTTPException(status_code=404, detail="Conversation not found")

    content = SessionExporter.render_session(
        SessionSnapshot.from_thread(thread),
        include_coaching=True,
        generated_at=thread.created_at
    )
    filename = SessionExporter.filename("session", thread.created_at)

    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


# Email sharing
@app.post("/api/email/send", response_model=EmailResponse)
async def send_email(
    req: EmailRequest,
    current_user: Optional[User] = Depends(get_optional_user)
) -> EmailResponse:
    """Format session content as an email for the client to copy; nothing is sent."""
    if not req.subject or not req.content:
        return error_response(status.HTTP_400_BAD_REQUEST, "Subject and content are required")

    recipient = current_user.email if current_user else None
    return EmailService.prepare(req.subject, req.content, recipient=recipient)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
