from flask import Blueprint, jsonify, request

from mangalink_app.errors import MatchNotFound
from mangalink_app.log import log
from mangalink_app.reader.models import Work
from mangalink_app.services import get_reader_service
from . import error_response, run_async
from .validators import MAX_TITLE_LENGTH, validate_fields

sources_bp = Blueprint('sources_api', __name__, url_prefix='/api/sources')


@sources_bp.route('', methods=['GET'])
def list_sources():
    """Registered providers in merge order."""
    registry = get_reader_service().registry
    return jsonify([
        {'id': p.id, 'name': p.name, 'family': p.provider_family}
        for p in registry.ordered_providers()
    ])


@sources_bp.route('/health', methods=['GET'])
def sources_health():
    """Get health status of all providers."""
    return jsonify(get_reader_service().registry.get_health_report())


@sources_bp.route('/<provider_id>/reset', methods=['POST'])
def reset_source(provider_id: str):
    """Reset a provider's error state."""
    if get_reader_service().registry.reset_provider(provider_id):
        log(f"Reset {provider_id}")
        return jsonify({'status': 'ok'})
    return error_response(f"Unknown provider: {provider_id}", code='not_found', status=404)


@sources_bp.route('/resolve', methods=['POST'])
def resolve_sources():
    """
    Find the work on every provider.

    Request body:
        {
            "title": "Solo Leveling",
            "alt_titles": ["Na Honjaman Level Up"],   # optional
            "id": "...", "url": "...",                # optional
            "provider_ids": {"mangadex": "..."},      # optional
            "consensus": true                         # optional
        }

    Returns:
        {"work": {...}, "instances": {provider: SourceInstance}, "consensus": {...}}
    """
    data = request.get_json(silent=True) or {}
    message = validate_fields(data, [('title', str, MAX_TITLE_LENGTH)])
    if message:
        return error_response(message)
    if not data['title'].strip():
        return error_response("Field 'title' must not be empty")

    try:
        work = Work.from_dict(data)
    except (TypeError, ValueError) as e:
        return error_response('Invalid work', detail=str(e))

    service = get_reader_service()

    async def _resolve():
        instances = await service.resolve_sources(work)
        consensus = None
        if data.get('consensus'):
            consensus = await service.chapter_consensus(instances)
        return instances, consensus

    try:
        instances, consensus = run_async(_resolve())
    except MatchNotFound as e:
        return error_response(str(e), code='match_not_found', status=404)

    payload = {
        'work': service.enrich_work(work, instances).to_dict(),
        'instances': {name: inst.to_dict() for name, inst in instances.items()},
    }
    if consensus is not None:
        payload['consensus'] = consensus.to_dict()
    return jsonify(payload)
