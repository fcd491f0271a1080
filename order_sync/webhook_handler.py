"""
Webhook handler for "order completed" events from the external shop.
Verifies the HMAC signature and hands the payload to OrderService.
"""

import logging
import json
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Dict, Optional

from aiohttp import web

from config import Config
from core.db import get_session, get_db_session_ctx
from affiliate_system.services.order_service import OrderService

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 1024 * 100  # 100KB


def _json_default(value):
    # Decimal / datetime in service results
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def json_response(data: Dict, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, dumps=lambda d: json.dumps(d, default=_json_default))


class WebhookHandler:
    """Handles order webhooks from the shop."""

    def __init__(self, secret_key: Optional[str] = None, session_factory=get_session):
        self.secret_key = secret_key or Config.get(Config.WEBHOOK_SECRET_KEY)

        # Security check: secret key must be configured
        if not self.secret_key:
            logger.critical("WEBHOOK_SECRET_KEY is not properly configured!")
            raise ValueError("WEBHOOK_SECRET_KEY must be set in environment")

        self.session_factory = session_factory
        self.app = web.Application()

        # Metrics
        self.request_count = 0
        self.error_count = 0
        self.start_time = datetime.now(timezone.utc)

        self.setup_routes()
        self.setup_middleware()

    def setup_routes(self):
        self.app.router.add_post('/webhook/order-complete', self.handle_order_complete)
        self.app.router.add_get('/webhook/health', self.handle_health)

    def setup_middleware(self):
        """Setup middleware for request processing"""

        @web.middleware
        async def error_middleware(request, handler):
            logger.info(f"Request from {request.remote}: {request.method} {request.path}")
            try:
                return await handler(request)
            except web.HTTPException:
                raise
            except Exception as e:
                logger.error(f"Error processing request: {e}", exc_info=True)
                self.error_count += 1
                return json_response({'error': 'Internal Server Error'}, status=500)

        self.app.middlewares.append(error_middleware)

    def verify_signature(self, data_dict: Dict, signature: str) -> bool:
        """
        Verify request signature.
        Signature is HMAC-SHA256 over the sorted JSON body without the signature field.
        """
        if not signature:
            logger.warning("No signature provided in request")
            return False

        data_for_verification = data_dict.copy()
        data_for_verification.pop('signature', None)

        payload_json = json.dumps(data_for_verification, sort_keys=True, separators=(',', ':'))

        expected = hmac.new(
            self.secret_key.encode('utf-8'),
            payload_json.encode('utf-8'),
            hashlib.sha256
        ).hexdigest()

        # Use constant-time comparison
        is_valid = hmac.compare_digest(expected, signature)

        if not is_valid:
            logger.warning(f"Invalid signature. Expected: {expected[:10]}..., Got: {signature[:10]}...")

        return is_valid

    async def handle_health(self, request: web.Request) -> web.Response:
        return json_response({
            'status': 'ok',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'uptime': (datetime.now(timezone.utc) - self.start_time).total_seconds(),
            'requests_total': self.request_count,
            'errors_total': self.error_count,
        })

    async def handle_order_complete(self, request: web.Request) -> web.Response:
        self.request_count += 1

        body = await request.read()
        if len(body) > MAX_BODY_SIZE:
            logger.warning(f"Request body too large from {request.remote}: {len(body)} bytes")
            return json_response({'error': 'Request too large'}, status=413)

        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON from {request.remote}: {e}")
            return json_response({'error': 'Invalid JSON'}, status=400)

        if not isinstance(data, dict):
            return json_response({'error': 'Invalid payload'}, status=400)

        if not self.verify_signature(data, data.get('signature', '')):
            return json_response({'error': 'Invalid signature'}, status=401)

        if data.get('order_id') is None:
            return json_response({'success': False, 'message': 'order_id is required'}, status=400)

        with get_db_session_ctx(self.session_factory) as session:
            result = OrderService(session).record_completed_order(data)

        return json_response({
            'success': True,
            'processed': result['processed'],
            'message': result['message'],
            'details': result['data'],
        })

    async def start(self, host: str = '127.0.0.1', port: int = 8080):
        if host == '0.0.0.0':
            logger.warning("Webhook server listening on all interfaces!")

        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, host, port)
        await site.start()

        logger.info(f"Order webhook server started on {host}:{port}")
        return runner


async def start_webhook_server():
    """Start order webhook server."""
    try:
        handler = WebhookHandler()

        host = Config.get(Config.WEBHOOK_HOST, '127.0.0.1')
        port = Config.get(Config.WEBHOOK_PORT, 8080)

        return await handler.start(host=host, port=int(port) if port else 8080)
    except ValueError as e:
        logger.critical(f"Failed to start webhook server: {e}")
        raise
