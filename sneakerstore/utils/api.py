# --- sneakerstore/utils/api.py ---
from flask import jsonify


def api_ok(message, data=None, meta=None):
    body = {
        "success": True,
        "message": message,
    }
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    return body


def api_error(message, errors=None):
    body = {
        "success": False,
        "message": message,
    }
    if errors is not None:
        body["errors"] = errors
    return body


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200, meta=None):
    r = jsonify(api_ok(msg, data, meta)); r.status_code = status; return r

def err(msg, status=400, errors=None):
    r = jsonify(api_error(msg, errors)); r.status_code = status; return r


def page_args(args, default_limit=None, max_limit=None):
    """Read `page` / `limit` query args, clamped to sane bounds."""
    from flask import current_app
    default_limit = default_limit or current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = max_limit or current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = int(args.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get("limit", default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def page_meta(paged, page, limit):
    return {
        "page": page,
        "limit": limit,
        "totalPages": paged.pages or 1,
        "totalItems": paged.total,
    }
