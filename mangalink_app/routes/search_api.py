"""Search API Blueprint.

GET /api/search?q=<query>[&providers=a,b]
"""

from flask import Blueprint, jsonify, request

from mangalink_app.log import log
from mangalink_app.services import get_reader_service
from . import error_response, run_async
from .validators import MAX_QUERY_LENGTH, sanitize_string, validate_provider_id

search_bp = Blueprint('search_api', __name__, url_prefix='/api/search')


@search_bp.route('', methods=['GET'])
def search():
    """
    Ranked, deduplicated results across providers.

    Returns:
        {"query": "...", "count": N, "results": [SearchResult, ...]}
    """
    query = sanitize_string(request.args.get('q'), MAX_QUERY_LENGTH)
    if not query:
        return error_response('Missing query parameter: q')

    service = get_reader_service()

    providers = None
    raw_providers = request.args.get('providers')
    if raw_providers:
        providers = [p.strip() for p in raw_providers.split(',') if p.strip()]
        known = list(service.registry.providers)
        for provider_id in providers:
            message = validate_provider_id(provider_id, known)
            if message:
                return error_response(message, code='unknown_provider')

    results = run_async(service.search(query, providers))
    log(f"Search '{query}' -> {len(results)} results")

    return jsonify({
        'query': query,
        'count': len(results),
        'results': [r.to_dict() for r in results],
    })
