"""
采样参数解析：agent 默认值 + 每次请求的覆盖项 -> 实际生效的 SamplingConfig。

规则：
- 覆盖项缺失 / None / 空字符串 -> 保留默认值
- 覆盖项存在但类型不对 -> ConfigurationError（不会静默回退到默认值）
- 不认识的 key 直接忽略（向前兼容）
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from agenticlab.errors import ConfigurationError


@dataclass(frozen=True)
class SamplingConfig:
    system_prompt: str
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    repeat_penalty: Optional[float] = None
    num_ctx: Optional[int] = None
    seed: Optional[int] = None
    stop: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class SamplingOverrides:
    """强类型的覆盖项（调用方是 Python 代码时优先用它，而不是 metadata dict）。"""
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    repeat_penalty: Optional[float] = None
    num_ctx: Optional[int] = None
    seed: Optional[int] = None
    stop: Optional[Tuple[str, ...]] = None

    def as_mapping(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[FIELD_TO_KEY[f.name]] = value
        return out


def _to_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "expected a number")
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(key, value, "expected a number") from e
    if math.isnan(number) or math.isinf(number):
        raise ConfigurationError(key, value, "expected a finite number")
    return number


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(key, value, "expected an integer")
    if isinstance(value, int):
        return value
    number = _to_float(key, value)
    if not number.is_integer():
        raise ConfigurationError(key, value, "expected an integer")
    return int(number)


def _to_positive_int(key: str, value: Any) -> int:
    number = _to_int(key, value)
    if number <= 0:
        raise ConfigurationError(key, value, "must be positive")
    return number


def _to_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(key, value, "expected a string")
    return value


def _to_stop(key: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, (list, tuple)) and all(isinstance(s, str) for s in value):
        return tuple(value)
    raise ConfigurationError(key, value, "expected a string or a list of strings")


# wire key -> (SamplingConfig 字段名, 转换函数)
OVERRIDE_FIELDS: Dict[str, Tuple[str, Callable[[str, Any], Any]]] = {
    "systemPrompt": ("system_prompt", _to_str),
    "temperature": ("temperature", _to_float),
    "maxTokens": ("max_tokens", _to_positive_int),
    "topP": ("top_p", _to_float),
    "topK": ("top_k", _to_int),
    "repeatPenalty": ("repeat_penalty", _to_float),
    "numCtx": ("num_ctx", _to_positive_int),
    "seed": ("seed", _to_int),
    "stop": ("stop", _to_stop),
}

FIELD_TO_KEY: Dict[str, str] = {name: key for key, (name, _) in OVERRIDE_FIELDS.items()}


def _is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple)) and not value:
        return True
    return False


def resolve(defaults: SamplingConfig, overrides: Optional[Mapping[str, Any]]) -> SamplingConfig:
    """把 overrides 叠加到 defaults 上。key 同时接受 camelCase（metadata）和字段名。"""
    if not overrides:
        return defaults

    changes: Dict[str, Any] = {}
    for raw_key, value in overrides.items():
        key = FIELD_TO_KEY.get(raw_key, raw_key)
        if key not in OVERRIDE_FIELDS or _is_absent(value):
            continue
        field_name, convert = OVERRIDE_FIELDS[key]
        changes[field_name] = convert(key, value)

    if not changes:
        return defaults
    return replace(defaults, **changes)
