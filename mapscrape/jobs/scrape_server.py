"""HTTP entrypoint: push page snapshots in, read or export the collection."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request

from mapscrape.core.config import get_settings
from mapscrape.core.session import EXPORT_BUILDERS, ScrapeSession
from mapscrape.core.store import build_store
from mapscrape.etl import selectors
from mapscrape.etl.dom import PageDocument
from mapscrape.etl.export import CSV_CONTENT_TYPE, XLS_CONTENT_TYPE, ExportError, sanitize_filename
from mapscrape.etl.extract import scrape_page

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & session ----------
app = Flask(__name__)
_session: Optional[ScrapeSession] = None
_session_lock = threading.Lock()

_CONTENT_TYPES = {"xls": XLS_CONTENT_TYPE, "csv": CSV_CONTENT_TYPE}


def get_session() -> ScrapeSession:
    global _session
    with _session_lock:
        if _session is None:
            settings = get_settings()
            _session = ScrapeSession(build_store(settings), export_dir=settings.export_dir)
            _session.load()
        return _session


# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    settings = get_settings()
    return jsonify({"status": "ok", "store_backend": settings.store_backend}), 200


@app.post("/scrape")
def scrape() -> Any:
    """
    Extract listings from a posted page snapshot.
    Accepts raw HTML, or JSON with ``html`` and optional ``base_url`` / ``search``.
    """
    if request.is_json:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"error": "JSON body must be an object"}), 400
        html = payload.get("html") or ""
        base_url = payload.get("base_url") or selectors.DEFAULT_BASE_URL
        search = payload.get("search")
    else:
        html = request.get_data(as_text=True) or ""
        base_url = request.args.get("base_url") or selectors.DEFAULT_BASE_URL
        search = request.args.get("search")

    if not isinstance(html, str) or not html.strip():
        return jsonify({"error": "html is required"}), 400
    if search is not None and not isinstance(search, str):
        return jsonify({"error": "search must be a string"}), 400

    document = PageDocument(html, base_url=str(base_url), search_value=search)
    session = get_session()
    added = session.ingest(scrape_page(document))
    return jsonify({"data": {"added": added, "total": session.total}}), 200


@app.get("/results")
def list_results() -> Any:
    session = get_session()
    session.load()
    return jsonify({"data": [record.to_dict() for record in session.records], "total": session.total}), 200


@app.delete("/results")
def clear_results() -> Any:
    if not get_session().clear():
        return jsonify({"error": "failed to clear results"}), 500
    return jsonify({"data": {"status": "cleared"}}), 200


@app.get("/export")
def export_results() -> Any:
    fmt = request.args.get("format", "xls").lower()
    if fmt not in EXPORT_BUILDERS:
        return jsonify({"error": f"format must be one of {', '.join(sorted(EXPORT_BUILDERS))}"}), 400

    filename = sanitize_filename(request.args.get("filename"), fmt)
    session = get_session()
    try:
        content = session.render_export(fmt)
    except (ExportError, ValueError) as exc:
        logger.exception("Export failed: %s", exc)
        return jsonify({"error": f"Export failed: {exc}"}), 500

    return Response(
        content,
        mimetype=_CONTENT_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def main() -> None:
    port = get_settings().server_port
    logger.info("[BOOT] ENV PORT=%s", os.getenv("PORT"))
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
