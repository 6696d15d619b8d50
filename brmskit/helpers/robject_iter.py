from collections.abc import Callable, Iterable
from dataclasses import MISSING, fields
from typing import Any, TypeVar

import pandas as pd

from brmskit.helpers.log import log_warning

T = TypeVar("T")


def _coerce(value: Any, target: Any, default: Any) -> Any:
    if value is None:
        return default
    if target is pd.DataFrame:
        return value if isinstance(value, pd.DataFrame) else pd.DataFrame(value)
    if target is bool:
        return bool(value[0] if isinstance(value, list) else value)
    if target is int:
        return int(value[0] if isinstance(value, list) else value)
    if target is float:
        return float(value[0] if isinstance(value, list) else value)
    if target is str:
        if isinstance(value, list):
            return " ".join(str(v) for v in value)
        return str(value)
    return value


def iterate_robject_to_dataclass(
    names: Iterable, get: Callable[[str], Any], target_dataclass: type[T]
) -> T:
    """
    Build a dataclass from the elements of a named R list.

    Only elements whose name matches a field are read. Values are coerced to
    the annotated field type where it is a simple type (DataFrame, bool, int,
    float, str); R NULL becomes the field default.
    """
    known = {f.name: f for f in fields(target_dataclass)}  # type: ignore[arg-type]
    values: dict[str, Any] = {}

    for name in names:
        name = str(name)
        f = known.get(name)
        if f is None:
            continue

        if f.default is not MISSING:
            default = f.default
        elif f.default_factory is not MISSING:
            default = f.default_factory()
        else:
            default = None

        try:
            raw = get(name)
        except Exception as e:
            log_warning(f"Could not read '{name}' from R object: {e}")
            continue
        values[name] = _coerce(raw, f.type, default)

    return target_dataclass(**values)
