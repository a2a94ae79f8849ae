# rewards_api/common/paging.py
from flask import request

DEFAULT_PAGE = 1
DEFAULT_SIZE = 20
MAX_SIZE = 100

def page_limit():
    try:
        page = max(int(request.args.get("page", DEFAULT_PAGE)), 1)
    except Exception:
        page = DEFAULT_PAGE
    try:
        size = int(request.args.get("limit", request.args.get("size", DEFAULT_SIZE)))
        size = max(1, min(size, MAX_SIZE))
    except Exception:
        size = DEFAULT_SIZE
    return page, size

def sort_params(allowed: set[str], default: str = "created_at"):
    """
    ?sort_by=calculated_value&sort_order=asc  => ("calculated_value", "asc")
    Unknown keys fall back to `default`; order defaults to desc.
    """
    key = (request.args.get("sort_by") or default).strip()
    if key not in allowed:
        key = default
    order = (request.args.get("sort_order") or "desc").strip().lower()
    if order not in ("asc", "desc"):
        order = "desc"
    return key, order

def text_q():
    q = request.args.get("search", request.args.get("q", ""))
    return q.strip() or None
