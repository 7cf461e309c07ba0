# studyquiz/app.py
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .agents import grader, quiz, topics
from .errors import ValidationError
from .registry import (
    FINAL_EXAM_RESULTS, QUIZ_RESULTS, ResultsRepository,
    close_client, get_client, get_repository,
)
from .schemas import (
    FinalExamRequest, FinalExamSubmission, ProgressRequest,
    QuizRequest, QuizSubmission, TopicsRequest,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ALLOWED_UPLOAD_TYPES = ("text/plain", "text/csv", "application/json")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_client()


app = FastAPI(title="StudyQuiz", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

#  error mapping: every failure body is {"error": message}

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Rejected %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errs = exc.errors()
    detail = "; ".join(f"{'.'.join(str(p) for p in e.get('loc', ())[1:])}: {e.get('msg')}" for e in errs) or "Invalid request"
    logger.info("Rejected %s: %s", request.url.path, detail)
    return JSONResponse(status_code=400, content={"error": detail})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

#  documents

@app.post("/upload")
async def upload_document(file: UploadFile = File(...)):
    """
    Accept a plain-text document and hand its text back to the client.
    Only TXT, CSV and JSON are supported.
    """
    ctype = (file.content_type or "").split(";")[0].strip().lower()
    if ctype not in ALLOWED_UPLOAD_TYPES:
        raise ValidationError("Currently only TXT, CSV, and JSON files are supported.")
    try:
        raw = await file.read()
    except Exception as e:
        logger.exception("Upload read failed")
        raise HTTPException(status_code=500, detail="Failed to upload file") from e

    content = ""
    try:
        text = raw.decode("utf-8", errors="ignore")
        if ctype == "application/json":
            content = json.dumps(json.loads(text), indent=2, ensure_ascii=False)
        else:
            content = text
    except ValueError as e:
        # keep the upload, just without text
        logger.warning("Text extraction failed for %s: %s", file.filename, e)

    return {
        "success": True,
        "filename": file.filename,
        "size": len(raw),
        "type": ctype,
        "content": content,
        "message": "File uploaded successfully",
    }

#  generation

@app.post("/topics")
async def generate_topics(req: TopicsRequest, client: httpx.AsyncClient = Depends(get_client)):
    try:
        return await topics.discover_topics(client, req.user_topics)
    except ValidationError:
        raise
    except Exception as e:
        logger.exception("Topics generation error")
        raise HTTPException(status_code=500, detail="Failed to generate topics") from e


@app.post("/generate")
async def generate_quiz(req: QuizRequest, client: httpx.AsyncClient = Depends(get_client)):
    try:
        topic = req.topic.wire() if req.topic else None
        return await quiz.generate_quiz(client, topic, req.file_content, req.question_count)
    except ValidationError:
        raise
    except Exception as e:
        logger.exception("Quiz generation error")
        raise HTTPException(status_code=500, detail="Failed to generate quiz") from e


@app.post("/final-exam")
async def generate_final_exam(req: FinalExamRequest, client: httpx.AsyncClient = Depends(get_client)):
    try:
        topic_dicts = [t.wire() for t in req.topics] if req.topics is not None else None
        return await quiz.generate_final_exam(client, topic_dicts, req.file_content, req.question_count)
    except ValidationError:
        raise
    except Exception as e:
        logger.exception("Final exam generation error")
        raise HTTPException(status_code=500, detail="Failed to generate final exam") from e

#  results & progress

@app.post("/results/quiz")
def submit_quiz(sub: QuizSubmission, repo: ResultsRepository = Depends(get_repository)):
    if not sub.questions:
        raise ValidationError("Questions are required")
    result = grader.build_result(sub.topic_id, sub.quiz_id, sub.questions, sub.user_answers)
    entry = repo.append(QUIZ_RESULTS, result.wire())
    logger.info("Stored quiz result %s for topic %s: %d%%", result.quiz_id, result.topic_id, result.score)
    return entry


@app.post("/results/final-exam")
def submit_final_exam(sub: FinalExamSubmission, repo: ResultsRepository = Depends(get_repository)):
    if not sub.questions:
        raise ValidationError("Questions are required")
    result = grader.build_final_exam_result(sub.questions, sub.user_answers)
    entry = result.wire()
    repo.append(FINAL_EXAM_RESULTS, entry)
    # also tracked alongside topic quizzes for progress
    repo.append(QUIZ_RESULTS, dict(entry))
    logger.info("Stored final exam result: %d%%", result.score)
    return entry


@app.get("/results")
def list_results(topicId: Optional[str] = None, repo: ResultsRepository = Depends(get_repository)):
    predicate = (lambda r: r.get("topicId") == topicId) if topicId else None
    return {"results": repo.list_all(QUIZ_RESULTS, predicate)}


@app.get("/results/final-exam")
def list_final_exam_results(repo: ResultsRepository = Depends(get_repository)):
    return {"results": repo.list_all(FINAL_EXAM_RESULTS)}


@app.post("/progress")
def progress(req: ProgressRequest, repo: ResultsRepository = Depends(get_repository)):
    return grader.progress_report(req.topics, repo.list_all(QUIZ_RESULTS))


@app.get("/health")
async def health_check():
    return {"status": "healthy", "hasApiKey": bool(config.GEMINI_API_KEY), "model": config.GEMINI_MODEL}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("studyquiz.app:app", host="0.0.0.0", port=8000)
