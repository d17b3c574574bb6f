"""Flask app entrypoint for the recipe finder.

This file wires up the Flask app, CORS, logging, and the JSON endpoints the
browser front end calls for recipe search and the recipe detail modal.
"""

import os
import logging
import threading
from datetime import datetime
from flask import Flask, request, jsonify
from flask_cors import CORS
from dotenv import load_dotenv
from app_models import (
    SearchQuery,
    SearchOutcome,
    ValidationError,
    ConfigurationError,
    ProviderError,
)
from app_config import load_config
from app_services import RecipeSearchService

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# CORS configuration - configure for production
CORS_METHODS = ["GET", "POST", "OPTIONS"]
cors_config = {
    "origins": "*",
    "methods": CORS_METHODS,
    "allow_headers": ["Content-Type"],
    "max_age": 3600,
}
CORS(app, resources={r"/api/*": cors_config})

start_time = datetime.now()
_service_lock = threading.Lock()


def get_search_service() -> RecipeSearchService:
    """
    Search service for this process, built from the environment on first use.

    Raises:
        ConfigurationError: If the active provider is not configured
    """
    service = app.config.get("SEARCH_SERVICE")
    if service is not None:
        return service
    with _service_lock:
        service = app.config.get("SEARCH_SERVICE")
        if service is None:
            service = RecipeSearchService.from_config(load_config())
            app.config["SEARCH_SERVICE"] = service
            logger.info(f"Recipe provider: {service.provider.name}")
    return service


def configuration_error_response(e: ConfigurationError):
    logger.error(f"Configuration error: {e.message}")
    return jsonify({
        "success": False,
        "error": e.message,
        "type": "configuration_error"
    }), e.status_code


def provider_error_response(e: ProviderError, query=None):
    logger.error(f"Provider error: {e.message} (cause: {type(e.cause).__name__ if e.cause else 'none'})")
    body = SearchOutcome.failed(e.message, query=query).to_dict()
    body["type"] = "provider_error"
    return jsonify(body), e.status_code


# --- RECIPE ENDPOINTS ---
@app.route("/api/recipes/search", methods=["POST"])
def search_recipes():
    """
    Search by recipe name or by ingredients.

    Request JSON:
    {"mode": "name", "query": "pasta"}
    {"mode": "ingredients", "ingredients": ["egg", "flour"]}

    Response (success):
    {
        "success": true,
        "status": "ok" | "empty",
        "recipe_count": 3,
        "recipes": [...]
    }
    """
    data = request.get_json(silent=True)
    if not data:
        logger.warning("Empty request body")
        return jsonify({
            "success": False,
            "error": "Request body must be JSON"
        }), 400

    try:
        query = SearchQuery.from_dict(data)
    except ValidationError as e:
        logger.warning(f"Validation error: {e.message}")
        return jsonify({
            "success": False,
            "error": e.message,
            "field": e.field
        }), 400

    try:
        outcome = get_search_service().search(query)
    except ConfigurationError as e:
        return configuration_error_response(e)
    except ProviderError as e:
        return provider_error_response(e, query=query)

    logger.info(f"Returning {len(outcome.recipes)} recipes (status: {outcome.status})")
    return jsonify(outcome.to_dict()), 200


@app.route("/api/recipes/last", methods=["GET"])
def last_results():
    """Most recent result set, or an empty one before the first search."""
    try:
        outcome = get_search_service().last_outcome
    except ConfigurationError as e:
        return configuration_error_response(e)

    if outcome is None:
        outcome = SearchOutcome.from_recipes([])
    return jsonify(outcome.to_dict()), 200


@app.route("/api/recipes/<recipe_id>", methods=["GET"])
def get_recipe(recipe_id):
    """Full detail for the recipe modal."""
    lookup_id = int(recipe_id) if recipe_id.isascii() and recipe_id.isdecimal() else recipe_id
    try:
        recipe = get_search_service().get_details(lookup_id)
    except ConfigurationError as e:
        return configuration_error_response(e)
    except ProviderError as e:
        return provider_error_response(e)

    if recipe is None:
        return jsonify({
            "success": False,
            "error": "Recipe not found"
        }), 404

    return jsonify({"success": True, "recipe": recipe.to_dict()}), 200


# --- UTILITY ENDPOINTS ---
@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint for deployment monitoring."""
    uptime_seconds = (datetime.now() - start_time).total_seconds()
    try:
        provider = get_search_service().provider.name
        status = "ok"
    except ConfigurationError as e:
        provider = None
        status = f"misconfigured: {e.message}"
    return jsonify({
        "status": status,
        "provider": provider,
        "uptime_seconds": int(uptime_seconds),
        "timestamp": datetime.now().isoformat()
    }), 200


@app.errorhandler(400)
def handle_bad_request(e):
    """Handle 400 errors."""
    logger.warning(f"Bad request: {str(e)}")
    return jsonify({
        "success": False,
        "error": "Bad request"
    }), 400


@app.errorhandler(404)
def handle_not_found(e):
    """Handle 404 errors."""
    return jsonify({
        "success": False,
        "error": "Endpoint not found"
    }), 404


@app.errorhandler(500)
def handle_server_error(e):
    """Handle 500 errors."""
    logger.error(f"Server error: {str(e)}")
    return jsonify({
        "success": False,
        "error": "Internal server error"
    }), 500


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5001))
    debug = os.getenv("FLASK_ENV", "production") == "development"

    logger.info(f"Starting Flask app on port {port} (debug={debug})")
    logger.info("CORS allowed origins: * (all sites)")
    try:
        get_search_service()
    except ConfigurationError as e:
        logger.warning(f"Recipe provider NOT configured: {e.message}")

    app.run(host="0.0.0.0", port=port, debug=debug)
