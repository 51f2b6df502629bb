# Folder: autoops/app/main.py
#
# Thin HTTP surface over the pipeline.
#
#   POST /run-flow     run the pipeline once (optional {"metrics": {...}} body)
#   POST /clear-cache  drop every cached summary / decision
#   GET  /health       liveness + cache size + health document
#
# No UI, no auth - this just turns pipeline calls into JSON.

import logging
import os
import sys
from typing import Optional

from flask import Flask, jsonify, request
from werkzeug.exceptions import MethodNotAllowed

from agent.orchestrator import AutoOpsPipeline
from ingestion.event_schema import PipelineFailure
import config

logger = logging.getLogger(__name__)


def create_app(pipeline: Optional[AutoOpsPipeline] = None) -> Flask:
    app = Flask(__name__)
    pipeline = pipeline or AutoOpsPipeline.from_config()
    app.config["PIPELINE"] = pipeline

    @app.errorhandler(MethodNotAllowed)
    def method_not_allowed(e):
        return jsonify({
            "error": "Method not allowed",
            "message": f"{request.path} does not accept {request.method} requests"
        }), 405

    @app.route("/run-flow", methods=["POST"])
    def run_flow():
        """
        Main entry point.
        Uses caller-supplied metrics when the body has them,
        otherwise the configured metrics source.
        """
        body = request.get_json(silent=True) or {}
        metrics_override = body.get("metrics") if isinstance(body, dict) else None

        outcome = pipeline.invoke(metrics_override)

        if isinstance(outcome, PipelineFailure):
            return jsonify(outcome.model_dump()), 500

        body = outcome.model_dump(mode="json", exclude={"metrics"})
        body["metrics"] = outcome.metrics.payload()
        return jsonify(body), 200

    @app.route("/clear-cache", methods=["POST"])
    def clear_cache():
        pipeline.clear_cache()
        return jsonify({"message": "Cache cleared successfully"}), 200

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "ok",
            "reasoning_provider": pipeline.provider.name if pipeline.provider else None,
            "cache_entries": len(pipeline.cache),
            "system_health": pipeline.executor.health_store.read().model_dump(),
        })

    return app


if __name__ == "__main__":
    os.makedirs(config.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if config.DEBUG else logging.INFO,
        format="%(asctime)s [%(name)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(config.LOG_DIR, "app.log"))
        ]
    )
    logger.info(f"AutoOps API starting on port {config.APP_PORT}")
    create_app().run(host="127.0.0.1", port=config.APP_PORT, debug=False)
