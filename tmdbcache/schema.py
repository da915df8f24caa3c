from typing import Any, Dict, List, Optional


def _is_positive_int(v: Any) -> bool:
    # bool is a subclass of int; a `true` id is not an id
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


def is_movie_id(v: Any) -> bool:
    return _is_positive_int(v)


def validate_page(data: Any) -> List[str]:
    """
    Returns a list of validation error messages for a popular-page payload.
    Empty list means the page can be used. Only the fields we read are checked:
    `results`, the list of movie summaries. `total_pages` is read
    separately by total_pages().
    """
    errors: List[str] = []

    if not isinstance(data, dict):
        return [f"Payload must be a JSON object, got {type(data).__name__}"]

    if "results" not in data:
        errors.append("Missing required field: results")
    elif not isinstance(data["results"], list):
        errors.append("Field 'results' must be a list")

    return errors


def movie_ids(data: Dict[str, Any]) -> List[int]:
    """Return the well-formed ids listed in a page payload, in page order."""
    ids = []
    for item in data.get("results") or []:
        if isinstance(item, dict) and is_movie_id(item.get("id")):
            ids.append(item["id"])
    return ids


def total_pages(data: Dict[str, Any]) -> Optional[int]:
    """Return the page count reported by the remote source, or None if unusable."""
    value = data.get("total_pages") if isinstance(data, dict) else None
    return value if _is_positive_int(value) else None
