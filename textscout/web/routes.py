"""Flask route blueprint for the TextScout web API."""

import logging
from pathlib import Path

from flask import Blueprint, current_app, jsonify, request
from werkzeug.utils import secure_filename

from ..errors import (
    EmptyTableError,
    NoTableLoadedError,
    RequestError,
    UnmappedCharactersError,
)
from ..memory import RomFileProvider
from ..session import TextSession
from .app import SESSION_KEY

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def get_session() -> TextSession:
    return current_app.extensions[SESSION_KEY]


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return (
        "." in filename and
        filename.rsplit(".", 1)[1].lower() in current_app.config["ALLOWED_EXTENSIONS"]
    )


def request_data() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequestError("Request body must be a JSON object")
    return data


def require(data: dict, name: str):
    value = data.get(name)
    if value is None or value == "":
        raise RequestError(f"Missing required field: {name}")
    return value


def int_field(data: dict, name: str, default=None):
    value = data.get(name, default)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RequestError(f"Field '{name}' must be an integer") from None


# ============================================================================
# Error handlers
# ============================================================================

@api_bp.errorhandler(EmptyTableError)
def handle_empty_table(error: EmptyTableError):
    return jsonify({"error": str(error), "parseErrors": error.diagnostics}), 400


@api_bp.errorhandler(NoTableLoadedError)
def handle_no_table(error: NoTableLoadedError):
    return jsonify({"error": str(error)}), 409


@api_bp.errorhandler(RequestError)
def handle_request_error(error: RequestError):
    return jsonify({"error": str(error)}), 400


@api_bp.errorhandler(UnmappedCharactersError)
def handle_unmapped(error: UnmappedCharactersError):
    return jsonify({"error": str(error), "unmapped": error.characters}), 422


@api_bp.errorhandler(FileNotFoundError)
def handle_not_found(error: FileNotFoundError):
    return jsonify({"error": str(error)}), 404


# ============================================================================
# API Routes
# ============================================================================

@api_bp.route("/rom", methods=["POST"])
def api_open_rom():
    """Upload a ROM image and use it as the memory source."""
    if "rom_file" not in request.files:
        raise RequestError("No file selected")

    file = request.files["rom_file"]
    if file.filename == "":
        raise RequestError("No file selected")
    if not allowed_file(file.filename):
        raise RequestError("Invalid file type")

    filename = secure_filename(file.filename)
    upload_folder = Path(current_app.config["UPLOAD_FOLDER"])
    upload_folder.mkdir(parents=True, exist_ok=True)
    filepath = upload_folder / filename
    file.save(filepath)

    session = get_session()
    session.provider = RomFileProvider(str(filepath))
    logger.info(f"Opened uploaded ROM {filename}")
    return jsonify({"rom": filename, "regions": session.regions()})


@api_bp.route("/regions", methods=["GET"])
def api_regions():
    """List memory regions and their sizes."""
    return jsonify({"regions": get_session().regions()})


@api_bp.route("/table", methods=["POST"])
def api_load_table():
    """Load a table from a path or inline content."""
    data = request_data()
    source = data.get("content") or data.get("path")
    if not source:
        raise RequestError("Missing required field: content or path")
    result = get_session().load_table(source)
    return jsonify(result.to_dict())


@api_bp.route("/table", methods=["GET"])
def api_table_info():
    """Show the active table."""
    return jsonify(get_session().table_info())


@api_bp.route("/search/relative", methods=["POST"])
def api_relative_search():
    """Relative search for text in an unknown encoding."""
    data = request_data()
    result = get_session().relative_search(
        require(data, "text"),
        data.get("region", "rom"),
        data.get("start"),
        data.get("end"),
        int_field(data, "maxResults"),
    )
    return jsonify(result.to_dict())


@api_bp.route("/search/text", methods=["POST"])
def api_search_text():
    """Search for text encoded with the active table."""
    data = request_data()
    result = get_session().search_text(
        require(data, "text"),
        data.get("region", "rom"),
        data.get("start"),
        data.get("end"),
        int_field(data, "maxResults"),
    )
    return jsonify(result.to_dict())


@api_bp.route("/search/bytes", methods=["POST"])
def api_search_bytes():
    """Search for a hex byte pattern."""
    data = request_data()
    result = get_session().search_memory(
        require(data, "pattern"),
        data.get("region", "rom"),
        data.get("start"),
        data.get("end"),
        int_field(data, "maxResults"),
    )
    return jsonify(result.to_dict())


@api_bp.route("/decode", methods=["POST"])
def api_decode():
    """Decode memory as text with the active table."""
    data = request_data()
    result = get_session().decode_text(
        require(data, "address"),
        int_field(data, "length", 256),
        data.get("region", "rom"),
        data.get("endMarker"),
    )
    return jsonify(result.to_dict())


@api_bp.route("/encode", methods=["POST"])
def api_encode():
    """Encode text with the active table."""
    data = request_data()
    result = get_session().encode_text(require(data, "text"))
    return jsonify(result.to_dict())
