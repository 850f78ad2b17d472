# api/backend/app_flask.py
import json
import logging
import queue
import time
from typing import Any, Dict, List

from flask import Flask, Response, abort, jsonify, request, session

import config
from classify import effective_color, legend
from errors import InvalidSignalForm, SignalNotFound, SignalStoreError
from filtering import SORT_COLUMNS, filter_signals, sort_signals
from forms import build_signal, draft_from_click
from grouping import group_signals, position
from store import SignalStore, build_store, records_from_snapshot
from votes import DIRECTIONS, FAILED, REJECTED, CooldownTracker, VoteCounter, normalize_votes

logger = logging.getLogger(__name__)


# ---------- ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ ----------

def signal_to_feature(record: Dict[str, Any]) -> dict:
    """Запись -> GeoJSON Feature. Без позиции geometry = null, запись не падает."""
    pos = position(record)
    properties = {k: v for k, v in record.items() if k != "id"}
    properties["color"] = effective_color(record)
    properties["votes"] = normalize_votes(record.get("votes"))

    return {
        "type": "Feature",
        "id": record.get("id"),
        "geometry": {"type": "Point", "coordinates": [pos[1], pos[0]]} if pos else None,
        "properties": properties,
    }


def feature_collection(records: List[Dict[str, Any]]) -> dict:
    return {"type": "FeatureCollection", "features": [signal_to_feature(r) for r in records]}


def group_to_dict(group: List[Dict[str, Any]]) -> dict:
    seed = group[0]
    pos = position(seed)
    return {
        "position": list(pos) if pos else None,
        "color": effective_color(seed),
        "count": len(group),
        "signals": [signal_to_feature(r) for r in group],
    }


def _visible_records(store: SignalStore) -> List[Dict[str, Any]]:
    """Свежий снимок -> фильтр -> сортировка (если задана)."""
    records = records_from_snapshot(store.snapshot())
    records = filter_signals(records, {
        "city": request.args.get("city", ""),
        "type": request.args.get("type", ""),
        "frequency": request.args.get("frequency", ""),
    })

    column = request.args.get("sort")
    if column:
        if column not in SORT_COLUMNS:
            abort(400, description=f"sort must be one of: {', '.join(sorted(SORT_COLUMNS))}")
        order = request.args.get("order", "asc").lower()
        if order not in ("asc", "desc"):
            abort(400, description="order must be asc or desc")
        records = sort_signals(records, column, ascending=order == "asc")
    return records


def create_app(store: SignalStore = None, clock=time.time, cooldown_seconds: float = None) -> Flask:
    app = Flask(__name__)
    app.secret_key = config.SECRET_KEY

    if store is None:
        config.setup_logging()
        store = build_store()
    if cooldown_seconds is None:
        cooldown_seconds = config.VOTE_COOLDOWN_SECONDS

    app.extensions["signal_store"] = store

    @app.errorhandler(SignalNotFound)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(SignalStoreError)
    def handle_store_error(e):
        logger.error("store error on %s %s: %s", request.method, request.path, e)
        return jsonify({"error": "Signal store is unavailable, please try again."}), 503

    @app.errorhandler(InvalidSignalForm)
    def handle_invalid_form(e):
        return jsonify({"error": str(e), "field": e.field}), 400

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/legend")
    def get_legend():
        return jsonify(legend())

    # ---------- API: сигналы ----------

    @app.route("/signals", methods=["GET"])
    def get_signals():
        """
        GET /signals?city=&type=&frequency=&sort=&order=asc|desc
        FeatureCollection для таблицы и карты.
        """
        return jsonify(feature_collection(_visible_records(store)))

    @app.route("/signals/groups", methods=["GET"])
    def get_signal_groups():
        """Маркеры карты: близкие сигналы (< 100 м) собраны в один маркер."""
        groups = group_signals(_visible_records(store))
        return jsonify({"groups": [group_to_dict(g) for g in groups]})

    @app.route("/signals/new", methods=["GET"])
    def new_signal_draft():
        return jsonify(draft_from_click(request.args.get("lat"), request.args.get("lon")))

    @app.route("/signals", methods=["POST"])
    def create_signal():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            abort(400, description="JSON object expected")

        record = build_signal(data)
        signal_id = store.insert(record)
        return jsonify(signal_to_feature({"id": signal_id, **record})), 201

    @app.route("/signals/<signal_id>/vote", methods=["POST"])
    def vote_signal(signal_id: str):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            abort(400, description="JSON object expected")

        direction = data.get("direction")
        if direction not in DIRECTIONS:
            abort(400, description="direction must be 'up' or 'down'")

        # cookie-сессия = локальное хранилище устройства
        session.permanent = True
        counter = VoteCounter(store, CooldownTracker(session, cooldown_seconds, clock))
        result = counter.vote(signal_id, direction)

        if result.status == REJECTED:
            return jsonify({
                "status": result.status,
                "message": result.message,
                "retry_after": round(result.retry_after, 1),
            }), 429
        if result.status == FAILED:
            return jsonify({"status": result.status, "message": result.message}), 409
        return jsonify({"status": result.status, "id": signal_id, "votes": result.votes})

    @app.route("/signals/stream", methods=["GET"])
    def stream_signals():
        """Server-Sent Events: текущий снимок сразу, дальше после каждого изменения."""

        def generate():
            events = queue.Queue()
            unsubscribe = store.subscribe(events.put)
            try:
                while True:
                    snap = events.get()
                    payload = feature_collection(records_from_snapshot(snap))
                    yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
            finally:
                unsubscribe()

        return Response(generate(), mimetype="text/event-stream", headers={"Cache-Control": "no-cache"})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
