"""
HTTP routes for the signaling coordinator.
"""
import json

from aiohttp import web

from ..core.exceptions import PeerCallError, ValidationError
from ..core.logging import debug_log
from ..core.validation_utils import ValidationUtils


@web.middleware
async def error_middleware(request, handler):
    """Convert PeerCallError and unexpected failures into JSON error bodies."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except PeerCallError as e:
        debug_log(f"⚠️ [HTTP] Request rejected", {
            "path": request.path,
            "code": e.code,
            "error": str(e)
        }, "WARNING")
        return web.json_response(e.to_dict(), status=e.status)
    except Exception as e:
        debug_log(f"❌ [HTTP] Request handling error", {
            "path": request.path,
            "error": str(e),
            "error_type": type(e).__name__
        }, "ERROR")
        return web.json_response(
            {'error': str(e), 'code': 'INTERNAL_ERROR', 'details': {}},
            status=500
        )


def cors_middleware_factory(origins):
    """Build a middleware that answers preflights and tags responses with CORS headers."""
    allow_any = '*' in origins

    def add_headers(headers, origin):
        if origin and (allow_any or origin in origins):
            headers['Access-Control-Allow-Origin'] = '*' if allow_any else origin
            headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
            headers['Access-Control-Allow-Headers'] = 'Content-Type'

    @web.middleware
    async def cors_middleware(request, handler):
        origin = request.headers.get('Origin')
        if request.method == 'OPTIONS':
            response = web.Response(status=204)
        else:
            try:
                response = await handler(request)
            except web.HTTPException as e:
                # Router 404/405 responses still need headers for the browser to read them
                add_headers(e.headers, origin)
                raise

        add_headers(response.headers, origin)
        return response

    return cors_middleware


async def _read_body(request) -> dict:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body is not valid JSON")


def _query_peer_id(request) -> str:
    return ValidationUtils.require(dict(request.query), ['peerId'])['peerId']


def _exchange(request):
    return request.app['server'].exchange


def _registry(request):
    return request.app['server'].registry


async def handle_create_room(request):
    """createRoom() -> {roomId}"""
    room_id = _registry(request).create_room()
    return web.json_response({'roomId': room_id})


async def handle_join_room(request):
    """joinRoom({roomId, peerId}) -> {peers}"""
    room_id = request.match_info['room_id']
    body = ValidationUtils.require(await _read_body(request), ['peerId'])
    peers = _registry(request).join_room(room_id, body['peerId'])
    return web.json_response({'peers': peers})


async def handle_list_peers(request):
    room_id = request.match_info['room_id']
    peer_id = request.query.get('peerId')
    peers = _registry(request).list_peers(room_id, peer_id)
    return web.json_response({'peers': peers})


async def handle_send_offer(request):
    room_id = request.match_info['room_id']
    body = ValidationUtils.require(await _read_body(request), ['fromPeerId', 'toPeerId', 'offer'])
    result = _exchange(request).send_offer(room_id, body['fromPeerId'], body['toPeerId'], body['offer'])
    return web.json_response(result)


async def handle_send_answer(request):
    room_id = request.match_info['room_id']
    body = ValidationUtils.require(await _read_body(request), ['fromPeerId', 'toPeerId', 'answer'])
    result = _exchange(request).send_answer(room_id, body['fromPeerId'], body['toPeerId'], body['answer'])
    return web.json_response(result)


async def handle_send_ice_candidate(request):
    room_id = request.match_info['room_id']
    body = ValidationUtils.require(await _read_body(request), ['fromPeerId', 'toPeerId', 'candidate'])
    result = _exchange(request).send_ice_candidate(room_id, body['fromPeerId'], body['toPeerId'], body['candidate'])
    return web.json_response(result)


async def handle_get_offers(request):
    room_id = request.match_info['room_id']
    return web.json_response(_exchange(request).get_offers(room_id, _query_peer_id(request)))


async def handle_get_answers(request):
    room_id = request.match_info['room_id']
    return web.json_response(_exchange(request).get_answers(room_id, _query_peer_id(request)))


async def handle_get_ice_candidates(request):
    """Drains: candidates returned here are not returned again."""
    room_id = request.match_info['room_id']
    return web.json_response(_exchange(request).get_ice_candidates(room_id, _query_peer_id(request)))


async def handle_status(request):
    """Handle status request."""
    return web.json_response(request.app['server'].get_server_status())


async def handle_health(request):
    return web.json_response({'status': 'ok'})


def setup_routes(app: web.Application):
    """Register every signaling route on ``app``."""
    app.router.add_post("/api/rooms", handle_create_room)
    app.router.add_post("/api/rooms/{room_id}/join", handle_join_room)
    app.router.add_get("/api/rooms/{room_id}/peers", handle_list_peers)
    app.router.add_post("/api/rooms/{room_id}/offers", handle_send_offer)
    app.router.add_get("/api/rooms/{room_id}/offers", handle_get_offers)
    app.router.add_post("/api/rooms/{room_id}/answers", handle_send_answer)
    app.router.add_get("/api/rooms/{room_id}/answers", handle_get_answers)
    app.router.add_post("/api/rooms/{room_id}/ice-candidates", handle_send_ice_candidate)
    app.router.add_get("/api/rooms/{room_id}/ice-candidates", handle_get_ice_candidates)
    app.router.add_get("/status", handle_status)
    app.router.add_get("/health", handle_health)
