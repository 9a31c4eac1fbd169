"""
Transcode API Server.
Single endpoint that turns a YouTube video id into an audio download, with
admission control in front of an ordered chain of download strategies.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from shared.models import AcquisitionRequest, AcquisitionResult
from transcoder import config
from transcoder.chain import FallbackChain
from transcoder.errors import TranscodeError, InvalidInput, CapacityExceeded
from transcoder.gate import ConcurrencyGate
from transcoder.identifiers import normalize_identifier
from transcoder.media import filename_extension

logger = logging.getLogger(__name__)


def error_response(error: Exception, status: Optional[int] = None):
    """Structured JSON failure; never an HTML error page."""
    if isinstance(error, InvalidInput):
        return jsonify({"success": False, "message": str(error)}), 400
    if isinstance(error, CapacityExceeded):
        response = jsonify({"success": False, "message": str(error)})
        response.status_code = 503
        response.headers['Retry-After'] = str(error.retry_after)
        return response
    body = {
        "success": False,
        "message": str(error) or "Unknown error occurred",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "errorType": type(error).__name__,
    }
    return jsonify(body), status or getattr(error, "status_code", 500)


class TranscodeHandler:
    """
    Request boundary: validate, admit, run the chain, build the response.

    Owns the process-wide ConcurrencyGate so the admission counter is an
    explicit object rather than a module global.
    """

    def __init__(
        self,
        gate: Optional[ConcurrencyGate] = None,
        chain: Optional[FallbackChain] = None,
        cache_max_age: int = config.CACHE_MAX_AGE_SECONDS,
    ):
        self.gate = gate or ConcurrencyGate(config.MAX_CONCURRENT, retry_after=config.RETRY_AFTER_SECONDS)
        self.chain = chain or FallbackChain()
        self.cache_max_age = cache_max_age

    def handle(self, raw_video_id: Optional[str], request_id: Optional[str] = None):
        acq = AcquisitionRequest(
            identifier=(raw_video_id or "").strip(),
            request_id=request_id or AcquisitionRequest.generate_id(),
        )
        prefix = acq.log_prefix
        logger.info(f"{prefix} New request received at {datetime.now(timezone.utc).isoformat()}")
        logger.info(f"{prefix} Processing videoId: {raw_video_id}")

        try:
            if not acq.identifier:
                raise InvalidInput("Missing 'videoId' parameter")

            with self.gate.slot(prefix):
                acq = replace(acq, identifier=normalize_identifier(acq.identifier))
                result = self.chain.run(acq)

            return self.audio_response(acq, result)
        except (InvalidInput, CapacityExceeded) as e:
            logger.warning(f"{prefix} Rejected: {e}")
            return error_response(e)
        except TranscodeError as e:
            return error_response(e)
        except Exception as e:
            logger.exception(f"{prefix} Unhandled error in transcode handler")
            return error_response(e, 500)

    def audio_response(self, acq: AcquisitionRequest, result: AcquisitionResult) -> Response:
        logger.info(
            f"{acq.log_prefix} Returning {result.size} bytes with Content-Type: {result.media_type} "
            f"(provider: {result.provider})"
        )
        ext = filename_extension(result.media_type)
        response = Response(result.payload, status=200, content_type=result.media_type)
        response.headers['Content-Length'] = str(result.size)
        response.headers['Content-Disposition'] = f'attachment; filename="{acq.identifier}.{ext}"'
        response.headers['Cache-Control'] = f'public, max-age={self.cache_max_age}'
        if result.provider:
            response.headers['X-Transcode-Provider'] = result.provider
        return response


app = Flask(__name__)
CORS(app, expose_headers=['Content-Disposition', 'Content-Length', 'Retry-After'])

# Global instance, built on first request
transcode_handler: Optional[TranscodeHandler] = None
_handler_lock = threading.Lock()


def get_handler() -> TranscodeHandler:
    global transcode_handler
    if transcode_handler is None:
        with _handler_lock:
            # Two handlers would mean two gates, each admitting MAX_CONCURRENT
            if transcode_handler is None:
                transcode_handler = TranscodeHandler()
    return transcode_handler


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"success": False, "message": e.description or e.name}), e.code


@app.route('/api/health')
def health_check():
    handler = get_handler()
    return jsonify({
        "status": "ok",
        "inFlight": handler.gate.in_flight,
        "maxConcurrent": handler.gate.max_concurrent,
        "providers": handler.chain.names,
    })


@app.route('/')
def home():
    return jsonify({
        "status": "online",
        "service": "YouTube Transcode API",
        "version": config.VERSION,
    })


@app.route('/api/transcode', methods=['GET'])
def transcode():
    """Return audio for ?videoId=<id> as an attachment."""
    return get_handler().handle(
        request.args.get('videoId'),
        request_id=request.headers.get('X-Request-ID'),
    )


# --- Server Management ---

def start_api(host: str = config.API_HOST, port: int = config.API_PORT):
    """Serve the API on gevent's WSGI server. Call gevent.monkey.patch_all() first."""
    from gevent.pywsgi import WSGIServer

    handler = get_handler()
    print("--- Transcode API Boot Sequence ---")
    print(f"Target: {host}:{port}")
    print(f"Max concurrent transcodes: {handler.gate.max_concurrent}")
    print(f"Provider chain: {' -> '.join(handler.chain.names)}")

    server = WSGIServer((host, port), app, log=None, error_log=logger)
    print(f"API: Starting gevent WSGI server on {host}:{port}...")
    server.serve_forever()
