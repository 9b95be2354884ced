from typing import Any, Dict


def updates_from(input_obj: Any) -> Dict[str, Any]:
    """Fields the caller actually set on a partial-update input"""
    return {key: value for key, value in vars(input_obj).items() if value is not None}
