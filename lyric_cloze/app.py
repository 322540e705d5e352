from __future__ import annotations

import base64
import logging
import time

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from lyric_cloze.api.schemas import GenerateRequest, WorksheetRequest
from lyric_cloze.config import EMPTY_LYRICS_MESSAGE, SESSION_COOKIE, TEMPLATES_DIR
from lyric_cloze.logging_utils import bind_request, configure_logging, elapsed_ms, log_event, new_request_id, unbind_request
from lyric_cloze.models import AppState
from lyric_cloze.services.llm import ClozeGenerationError, ClozeService
from lyric_cloze.session import LyricsValidationError, SessionBusyError, SessionStore, WorksheetSession
from lyric_cloze.worksheet.exporter import ExportedDocument, export_document
from lyric_cloze.worksheet.layout import resolve_for_lines
from lyric_cloze.worksheet.renderer import render_worksheet

configure_logging()
logger = logging.getLogger(__name__)

cloze_service = ClozeService()
sessions = SessionStore()
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

app = FastAPI(title="LyricCloze Gen", version="0.1.0")


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or new_request_id()
    bind_request(request_id=request_id, route=request.url.path)
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        log_event(logger, "request_completed", logging.ERROR, status_code=500, duration_ms=elapsed_ms(started))
        unbind_request()
        raise
    log_event(logger, "request_completed", status_code=response.status_code, duration_ms=elapsed_ms(started))
    response.headers["X-Request-ID"] = request_id
    unbind_request()
    return response


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "llm_available": cloze_service.available()}


@app.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    session, created = sessions.get_or_create(request.cookies.get(SESSION_COOKIE))
    if session.state == AppState.READY and session.result is not None:
        styles = session.styles()
        response = HTMLResponse(render_worksheet(session.song, session.result, styles.screen))
    else:
        response = templates.TemplateResponse(
            request,
            "index.html",
            {
                "song": session.song,
                "error": session.error,
                "generating": session.state == AppState.GENERATING,
            },
        )
    return _with_session_cookie(response, session, created)


@app.post("/generate")
async def generate(
    request: Request,
    title: str = Form(default=""),
    artist: str = Form(default=""),
    lyrics: str = Form(default=""),
    remove_cover: bool = Form(default=False),
    cover: UploadFile | None = File(default=None),
) -> Response:
    session, created = sessions.get_or_create(request.cookies.get(SESSION_COOKIE))
    cover_image = await _cover_data_url(cover)
    try:
        session.update_song(title=title, artist=artist, lyrics=lyrics, cover_image=cover_image, keep_cover=not remove_cover)
        await run_in_threadpool(session.submit, cloze_service)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except LyricsValidationError:
        pass
    return _with_session_cookie(RedirectResponse("/", status_code=303), session, created)


@app.get("/print", response_class=HTMLResponse)
def print_view(request: Request) -> Response:
    session = _ready_session(request)
    if session is None:
        return RedirectResponse("/", status_code=303)
    styles = session.styles()
    return HTMLResponse(render_worksheet(session.song, session.result, styles.screen, print_mode=True))


@app.get("/export")
def export(request: Request, answer_key: bool = False) -> Response:
    session = _ready_session(request)
    if session is None:
        raise HTTPException(status_code=404, detail="no worksheet to export")
    styles = session.styles()
    document = export_document(session.song, session.result, styles.export, include_answer_key=answer_key)
    return _document_response(document)


@app.post("/reset")
def reset(request: Request) -> Response:
    session, created = sessions.get_or_create(request.cookies.get(SESSION_COOKIE))
    try:
        session.reset()
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _with_session_cookie(RedirectResponse("/", status_code=303), session, created)


@app.post("/new")
def new_worksheet(request: Request) -> Response:
    session, created = sessions.get_or_create(request.cookies.get(SESSION_COOKIE))
    try:
        session.start_over()
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _with_session_cookie(RedirectResponse("/", status_code=303), session, created)


@app.post("/api/generate")
def api_generate(req: GenerateRequest) -> dict:
    if not req.lyrics.strip():
        raise HTTPException(status_code=400, detail=EMPTY_LYRICS_MESSAGE)
    try:
        result = cloze_service.generate(req.lyrics)
    except ClozeGenerationError as exc:
        log_event(logger, "cloze_generation_failed", logging.WARNING, detail=str(exc))
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"ok": True, **result.to_payload()}


@app.post("/api/worksheet", response_class=HTMLResponse)
def api_worksheet(req: WorksheetRequest) -> HTMLResponse:
    result = req.result.to_result()
    styles = resolve_for_lines(result.lines)
    return HTMLResponse(render_worksheet(req.song.to_song(), result, styles.screen, toolbar=False))


@app.post("/api/export")
def api_export(req: WorksheetRequest) -> Response:
    result = req.result.to_result()
    styles = resolve_for_lines(result.lines)
    document = export_document(req.song.to_song(), result, styles.export, include_answer_key=req.include_answer_key)
    return _document_response(document)


def _ready_session(request: Request) -> WorksheetSession | None:
    session = sessions.get(request.cookies.get(SESSION_COOKIE))
    if session is None or session.state != AppState.READY or session.result is None:
        return None
    return session


def _document_response(document: ExportedDocument) -> Response:
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": f'attachment; filename="{document.filename}"'},
    )


def _with_session_cookie(response: Response, session: WorksheetSession, created: bool) -> Response:
    if created:
        response.set_cookie(SESSION_COOKIE, session.session_id, httponly=True, samesite="lax")
    return response


async def _cover_data_url(upload: UploadFile | None) -> str | None:
    if upload is None or not upload.filename:
        return None
    payload = await upload.read()
    if not payload:
        return None
    mime_type = (upload.content_type or "").lower()
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="cover art must be an image file")
    return image_data_url(payload, mime_type)


def image_data_url(payload: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(payload).decode("ascii")
    return f"data:{mime_type};base64,{b64}"
