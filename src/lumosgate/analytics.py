"""Small aggregations over JSON arrays for the data panel."""

from __future__ import annotations

from typing import Any, Dict, List

from .errors import InvalidPayload, UnsupportedOperation


def _numbers(data: List[Any]) -> List[float]:
    # bool is an int subclass but not a measurement
    return [float(v) for v in data if isinstance(v, (int, float)) and not isinstance(v, bool)]


def aggregate(operation: str, data: Any) -> Dict[str, Any]:
    if not isinstance(data, list):
        raise InvalidPayload("Invalid data format: expected a JSON array")
    op = operation.strip().lower()
    if op == "sum":
        return {"sum": sum(_numbers(data))}
    if op == "average":
        values = _numbers(data)
        return {"average": sum(values) / len(values) if values else 0.0}
    if op == "count":
        return {"count": len(data)}
    raise UnsupportedOperation(f"Unsupported operation: {operation}")
