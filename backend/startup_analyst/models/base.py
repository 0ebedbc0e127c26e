"""
Shared pydantic base and lenient field types for LLM-produced data.

LLM JSON is camelCase, often sends null, numbers as strings ("$3.5M", "1,200")
and single values where lists are expected. The annotated types below coerce
those shapes so that a missing value becomes 0 / "" / [] and never None.
"""

import json
import math
import re
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

NUMBER_PATTERN = re.compile(r"(-?\d+(?:\.\d+)?)\s*([kKmMbB])?\b")
MULTIPLIERS = {"k": 1e3, "m": 1e6, "b": 1e9}


def coerce_number(value: Any) -> float:
    """Best-effort numeric conversion; anything unusable becomes 0"""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if isinstance(value, str):
        match = NUMBER_PATTERN.search(value.replace(",", ""))
        if not match:
            return 0.0
        number = float(match.group(1))
        suffix = match.group(2)
        if suffix:
            number *= MULTIPLIERS[suffix.lower()]
        return number
    return 0.0


def coerce_int(value: Any) -> int:
    return int(round(coerce_number(value)))


TRUTHY_WORDS = {"true", "yes", "y", "1", "achieved", "done", "completed"}


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_WORDS
    return False


def coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def coerce_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]

    items = []
    for item in value:
        if isinstance(item, dict) and item.get("name"):
            item = item["name"]
        text = coerce_text(item)
        if text:
            items.append(text)
    return items


def coerce_dict_list(value: Any) -> list:
    """Keep only object-shaped items; a single object becomes a one-item list"""
    if value is None:
        return []
    if isinstance(value, (dict, BaseModel)):
        return [value]
    if isinstance(value, list):
        return [item for item in value if isinstance(item, (dict, BaseModel))]
    return []


LenientFloat = Annotated[float, BeforeValidator(coerce_number)]
LenientInt = Annotated[int, BeforeValidator(coerce_int)]
LenientBool = Annotated[bool, BeforeValidator(coerce_bool)]
LenientStr = Annotated[str, BeforeValidator(coerce_text)]
LenientStrList = Annotated[List[str], BeforeValidator(coerce_text_list)]


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class LenientModel(CamelModel):
    """Model fed by LLM output: non-dict input and null members fall back to defaults"""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if value is not None}
