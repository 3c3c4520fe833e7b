"""
================================================================================
MangaLink - Reading Progress API
================================================================================
Tracks per-(work, provider) reading progress and "continue reading".

Endpoints:
    POST /api/progress/save                      - Save reading position
    GET  /api/progress/<work_id>/<provider>      - Get stored progress
    POST /api/progress/continue                  - Open the chapter to continue with
================================================================================
"""

from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, jsonify, request

from sources.base import ProviderError
from mangalink_app.errors import MatchNotFound, NotFoundError, ProgressStoreError
from mangalink_app.log import log
from mangalink_app.reader.models import ReadingSession, Work
from mangalink_app.reader.progress import PageBox, Viewport, compute_position
from mangalink_app.services import get_reader_service
from . import error_response, run_async
from .validators import MAX_TITLE_LENGTH, validate_fields, validate_provider_id

progress_bp = Blueprint('progress', __name__, url_prefix='/api/progress')

NUMBER = (int, float)


def _position_from_payload(data: Dict[str, Any]) -> Tuple[Optional[Tuple[int, float]], Optional[str]]:
    """(page, fraction) from either page geometry or an explicit position."""
    if 'pages' in data or 'viewport' in data:
        raw_pages = data.get('pages')
        raw_viewport = data.get('viewport')
        if not isinstance(raw_pages, list) or not isinstance(raw_viewport, dict):
            return None, "Geometry needs 'pages' (list) and 'viewport' (object)"
        try:
            pages = [PageBox(top=float(p['top']), height=float(p['height'])) for p in raw_pages]
            viewport = Viewport(
                scroll_top=float(raw_viewport['scroll_top']),
                height=float(raw_viewport['height']),
            )
        except (KeyError, TypeError, ValueError) as e:
            return None, f"Invalid geometry: {e}"

        position = compute_position(pages, viewport)
        if position is None:
            return None, "No pages to derive a position from"
        return (position.page_number, position.scroll_fraction), None

    message = validate_fields(data, [('page_number', int, None), ('scroll_fraction', NUMBER, None)])
    if message:
        return None, message
    return (data['page_number'], float(data['scroll_fraction'])), None


@progress_bp.route('/save', methods=['POST'])
def save_progress():
    """
    Save reading position for a chapter.

    Request body:
        {
            "work_id": "...",
            "provider": "mangadex",
            "chapter_number": 12,
            "total_pages": 20,
            # either an explicit position
            "page_number": 5, "scroll_fraction": 0.4,
            # or the page layout it is derived from
            "pages": [{"top": 0, "height": 1200}, ...],
            "viewport": {"scroll_top": 3100, "height": 900}
        }

    Returns:
        {"progress": {...}, "completed_now": bool, "persisted": bool}
    """
    data = request.get_json(silent=True) or {}

    message = validate_fields(data, [
        ('work_id', str, MAX_TITLE_LENGTH),
        ('provider', str, 100),
        ('chapter_number', NUMBER, None),
        ('total_pages', int, None),
    ])
    if message:
        return error_response(message)

    message = validate_provider_id(data['provider'])
    if message:
        return error_response(message)
    if data['chapter_number'] < 0:
        return error_response("Field 'chapter_number' must be >= 0")
    if data['total_pages'] < 1:
        return error_response("Field 'total_pages' must be >= 1")

    position, message = _position_from_payload(data)
    if message:
        return error_response(message)
    page_number, scroll_fraction = position

    service = get_reader_service()
    tracker, completed_now = run_async(service.save_position(
        work_id=data['work_id'],
        provider_name=data['provider'],
        chapter_number=float(data['chapter_number']),
        total_pages=data['total_pages'],
        page_number=page_number,
        scroll_fraction=scroll_fraction,
    ))

    if completed_now:
        log(f"Completed {data['work_id']} ch{float(data['chapter_number']):g} on {data['provider']}")

    return jsonify({
        'progress': tracker.progress.to_dict(),
        'completed_now': completed_now,
        'persisted': tracker.is_persisted,
    })


@progress_bp.route('/<path:work_id>/<provider>', methods=['GET'])
def get_progress(work_id: str, provider: str):
    """Stored progress for one (work, provider) pair."""
    message = validate_provider_id(provider)
    if message:
        return error_response(message)

    try:
        progress = run_async(get_reader_service().get_progress(work_id, provider))
    except ProgressStoreError as e:
        return error_response('Progress store unavailable', code='store_error', status=503, detail=str(e))

    if progress is None:
        return error_response('No progress recorded', code='not_found', status=404)
    return jsonify({'progress': progress.to_dict()})


def _session_payload(session: ReadingSession) -> Dict[str, Any]:
    next_chapter = session.next_chapter()
    previous_chapter = session.previous_chapter()
    return {
        'work': session.work.to_dict(),
        'provider': session.provider_name,
        'source_ref': session.source_ref,
        'chapter': session.chapter.to_dict(),
        'pages': [p.to_dict() for p in session.pages],
        'next_chapter': next_chapter.to_dict() if next_chapter else None,
        'previous_chapter': previous_chapter.to_dict() if previous_chapter else None,
        'progress': session.progress.to_dict() if session.progress else None,
    }


@progress_bp.route('/continue', methods=['POST'])
def continue_reading():
    """
    Open the chapter to continue with, on whichever provider has it.

    Request body:
        {"title": "...", "id": "...", "alt_titles": [...], "imported_chapter": 41}
    """
    data = request.get_json(silent=True) or {}
    message = validate_fields(data, [('title', str, MAX_TITLE_LENGTH)])
    if message:
        return error_response(message)

    imported = data.get('imported_chapter')
    if imported is not None and (isinstance(imported, bool) or not isinstance(imported, NUMBER)):
        return error_response("Field 'imported_chapter' must be a number")

    try:
        work = Work.from_dict(data)
    except (TypeError, ValueError) as e:
        return error_response('Invalid work', detail=str(e))

    try:
        session = run_async(get_reader_service().continue_reading(work, imported_chapter=imported))
    except MatchNotFound as e:
        return error_response(str(e), code='match_not_found', status=404)
    except NotFoundError as e:
        return error_response(str(e), code='no_chapters', status=404)
    except ProviderError as e:
        return error_response('All providers failed', code='provider_error', status=502, detail=str(e))

    if session is None:
        return error_response('Load superseded by a newer request', code='stale', status=409)

    return jsonify(_session_payload(session))
