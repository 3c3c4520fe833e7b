"""HTTP blueprints and the helpers they share."""

import asyncio
from typing import Optional

from flask import jsonify


def run_async(coro):
    """
    Run async coroutine in sync Flask context.

    Flask routes are sync, the reading pipeline is async. Each request gets
    its own event loop.
    """
    return asyncio.run(coro)


def error_response(message: str, code: str = 'invalid_request', status: int = 400, detail: Optional[str] = None):
    payload = {'error': message, 'code': code}
    if detail:
        payload['detail'] = detail
    return jsonify(payload), status
