from __future__ import annotations

import argparse
import hmac
import io
import logging
import sys
from collections.abc import Sequence
from typing import Any, Protocol

from flask import Blueprint, Flask, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from wagate.config import GatewayConfig, config_from_env
from wagate.core.entities import BulkSendResult, MessageContent, TextContent, media_content
from wagate.core.errors import GatewayError, InvalidRequest
from wagate.core.jid import normalize_recipient
from wagate.infra.logger import get_logger, parse_level
from wagate.utils.qr import qr_svg_data_url
from wagate.utils.spreadsheet import XLSX_MIMETYPE, build_template, read_numbers

from .runtime import GatewayRuntime

logger = logging.getLogger(__name__)

TEMPLATE_FILENAME = "whatsapp-numbers-template.xlsx"


class GatewayRuntimeLike(Protocol):
    def connection_state(self) -> dict[str, Any]: ...

    def wait_for_qr(self, timeout: float) -> str: ...

    def authenticate(self, timeout: float) -> str: ...

    def send_text(self, recipient: str, text: str) -> Any: ...

    def send_message(self, recipient: str, content: MessageContent) -> Any: ...

    def send_bulk(self, recipients: Sequence[str], content: MessageContent) -> BulkSendResult: ...


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _presented_token() -> str | None:
    token = request.headers.get("x-api-token")
    if token:
        return token.strip()
    authorization = request.headers.get("Authorization", "").strip()
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return authorization or None


def _bulk_recipients(raw: Any) -> list[str]:
    if not isinstance(raw, list) or not raw:
        raise InvalidRequest("recipients must be a non-empty array")
    recipients: list[str] = []
    for item in raw:
        if isinstance(item, bool) or not isinstance(item, (str, int)):
            raise InvalidRequest("recipients must contain only strings")
        recipients.append(str(item))
    return recipients


def _caption(data: dict[str, Any]) -> str | None:
    caption = data.get("caption")
    if caption is not None and not isinstance(caption, str):
        raise InvalidRequest("caption must be a string")
    return caption


def _bulk_content(data: dict[str, Any]) -> MessageContent:
    kind = str(data.get("type") or "text").lower()
    if kind == "text":
        message = data.get("message")
        if not isinstance(message, str) or not message:
            raise InvalidRequest("message is required for text messages")
        return TextContent(message)
    url = data.get("url")
    if not isinstance(url, str) or not url:
        raise InvalidRequest("url is required for media messages")
    return media_content(kind, url, _caption(data))


def create_app(
    config: GatewayConfig | None = None,
    *,
    testing: bool = False,
    runtime: GatewayRuntimeLike | None = None,
) -> Flask:
    cfg = config or config_from_env()
    app = Flask(__name__)
    app.config["TESTING"] = testing
    gateway = runtime or GatewayRuntime(cfg)
    app.config["GATEWAY_RUNTIME"] = gateway

    if not cfg.api_token:
        logger.warning("no API token configured; requests are not authenticated")

    @app.before_request
    def check_token():
        if not cfg.api_token or request.path == "/":
            return None
        presented = _presented_token()
        if presented is None or not hmac.compare_digest(presented.encode("utf-8"), cfg.api_token.encode("utf-8")):
            return _error("Invalid or missing API token", 403)
        return None

    @app.errorhandler(GatewayError)
    def handle_gateway_error(exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, exc)
        return _error(str(exc), exc.status_code)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return _error(exc.description or exc.name, exc.code or 500)
        logger.exception("unhandled error in %s %s", request.method, request.path)
        return _error(str(exc) or "Internal server error", 500)

    @app.get("/")
    def index():
        return jsonify({"message": "WhatsApp API Server is running!"})

    api = Blueprint("whatsapp", __name__, url_prefix=cfg.url_prefix or None)

    @api.post("/send/text")
    def send_text():
        data = _json_body()
        recipient = data.get("recipient")
        message = data.get("message")
        if not recipient or not message:
            return _error("Recipient and message are required", 400)
        if not isinstance(message, str):
            raise InvalidRequest("message must be a string")

        jid = normalize_recipient(recipient)
        gateway.send_text(jid, message)
        return jsonify(
            {
                "success": True,
                "message": "Message sent successfully",
                "data": {"recipient": jid, "messageContent": message},
            }
        )

    @api.post("/send/media")
    def send_media():
        data = _json_body()
        recipient = data.get("recipient")
        media_type = data.get("type")
        url = data.get("url")
        if not recipient or not media_type or not url:
            return _error("Recipient, media type, and url are required", 400)

        if not isinstance(url, str):
            raise InvalidRequest("url must be a string")
        content = media_content(media_type, url, _caption(data))
        jid = normalize_recipient(recipient)
        gateway.send_message(jid, content)
        return jsonify(
            {
                "success": True,
                "message": f"{media_type} message sent successfully",
                "data": {"recipient": jid, "mediaType": media_type, "url": url},
            }
        )

    @api.get("/status")
    def status():
        state = gateway.connection_state()
        return jsonify({"success": True, "connected": bool(state.get("connected")), "state": state.get("state")})

    @api.get("/qr")
    def qr():
        code = gateway.wait_for_qr(cfg.qr_timeout_s)
        return jsonify({"success": True, "qr": code, "qrImage": qr_svg_data_url(code)})

    @api.post("/auth")
    def auth():
        token = gateway.authenticate(cfg.auth_timeout_s)
        return jsonify({"success": True, "data": token})

    @api.post("/upload-excel")
    def upload_excel():
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            return _error("No file uploaded", 400)
        try:
            numbers = read_numbers(upload.read())
        except Exception as exc:
            logger.exception("failed to parse uploaded spreadsheet %s", upload.filename)
            return _error(f"Failed to parse spreadsheet: {exc}", 500)
        return jsonify({"success": True, "numbers": numbers})

    @api.get("/download-template")
    def download_template():
        return send_file(
            io.BytesIO(build_template()),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=TEMPLATE_FILENAME,
        )

    @api.post("/send/bulk")
    def send_bulk():
        data = _json_body()
        recipients = _bulk_recipients(data.get("recipients"))
        content = _bulk_content(data)
        results = gateway.send_bulk(recipients, content)
        return jsonify({"success": True, "results": [outcome.to_dict() for outcome in results]})

    app.register_blueprint(api)
    return app


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the WhatsApp HTTP gateway.")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", default=None, type=int)
    parser.add_argument("--session", default=None, help="session id (directory under the sessions root)")
    parser.add_argument("--sessions-dir", default=None)
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    cfg = config_from_env()
    if args.host:
        cfg.host = args.host
    if args.port:
        cfg.port = args.port
    if args.session:
        cfg.session_id = args.session
    if args.sessions_dir:
        cfg.sessions_dir = args.sessions_dir
    if args.log_level:
        cfg.log_level = args.log_level

    get_logger("wagate", parse_level(cfg.log_level))

    runtime = GatewayRuntime(cfg)
    try:
        runtime.start()
    except GatewayError as exc:
        logger.error("failed to initialize WhatsApp client: %s", exc)
        runtime.close()
        sys.exit(1)

    app = create_app(cfg, runtime=runtime)
    logger.info("server listening on %s:%s%s", cfg.host, cfg.port, cfg.url_prefix)
    try:
        app.run(host=cfg.host, port=cfg.port, debug=args.debug, use_reloader=False)
    finally:
        runtime.close()


if __name__ == "__main__":
    main()
