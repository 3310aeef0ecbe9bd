import os
import sys
from datetime import datetime
from typing import Any, Callable

import yaml
from loguru import logger


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```) from model output."""
    if not text:
        return ""
    text = text.strip()
    if text.startswith("```"):
        text = text[3:]
        if "\n" in text:
            first_line, rest = text.split("\n", 1)
            if first_line.strip().isalpha() or not first_line.strip():
                text = rest
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def dget(data: dict, *path: str, default: Any = None) -> Any:
    if path is None or not data:
        return default

    for p in path:
        d = dotget(data, p)
        if d is not None:
            return d

    return default


def dotexists(data: dict, *paths: str) -> bool:
    for path in paths:
        if dotget(data, path, default="@@") != "@@":
            return True
    return False


def dotexpand(paths: str | list[str]) -> list[str]:
    """Expands paths with ',' and ':'."""
    if not paths:
        return []
    if not isinstance(paths, (str, list)):
        raise ValueError("dot path must be a string or list of strings")
    paths = paths if isinstance(paths, list) else [paths]
    expanded_paths: list[str] = []
    for p in paths:
        for q in p.replace(" ", "").split(","):
            if not q:
                continue
            if ":" in q:
                expanded_paths.extend([q.replace(":", "."), q.replace(":", "_")])
            else:
                expanded_paths.append(q)
    return expanded_paths


def dotget(data: dict, path: str, default: Any = None) -> Any:
    """Gets element from dict. Path can be x.y.y or x_y_y or x:y:y.
    if path is x:y:y then element is search using both x.y.y or x_y_y."""

    for key in dotexpand(path):
        d: dict | None = data
        for attr in key.split("."):
            d = d.get(attr) if isinstance(d, dict) else None
            if d is None:
                break
        if d is not None:
            return d
    return default


def dotset(data: dict, path: str, value: Any) -> dict:
    """Sets element in dict using dot notation x.y.z or x:y:z"""

    d: dict = data
    attrs: list[str] = path.replace(":", ".").split(".")
    for attr in attrs[:-1]:
        if not attr:
            continue
        d = d.setdefault(attr, {})
    d[attrs[-1]] = value

    return data


def env2dict(prefix: str, data: dict[str, Any] | None = None, lower_key: bool = True) -> dict[str, Any]:
    """Loads environment variables starting with prefix into data.

    TEACHER_COMPANION_LLM_PROVIDER=ollama ends up as data["llm"]["provider"].
    """
    if data is None:
        data = {}
    if not prefix:
        return data
    if lower_key:
        prefix = prefix.lower()
    for key, value in os.environ.items():
        if lower_key:
            key = key.lower()
        if key.startswith(prefix):
            dotset(data, key[len(prefix) + 1 :].replace("_", ":"), value)
    return data


def replace_env_vars(data: dict[str, Any] | list[Any] | str) -> dict[str, Any] | list[Any] | str:
    """Searches data recursively for string values matching ${ENV_VAR} and replaces them with os.getenv("ENV_VAR", "")"""
    if isinstance(data, dict):
        return {k: replace_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [replace_env_vars(i) for i in data]
    if isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var: str = data[2:-1]
        return os.getenv(env_var, "")
    return data


def configure_logging(opts: dict[str, Any] | None = None) -> None:

    logger.remove()
    logger.add(
        sys.stdout,
        level=(opts or {}).get("level", "INFO"),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
    )
    if not opts:
        return

    if opts.get("handlers"):

        handlers: list[dict[str, Any]] = []
        for handler in opts["handlers"]:

            if not handler.get("sink"):
                continue

            handler = dict(handler)
            if handler["sink"] == "sys.stdout":
                handler["sink"] = sys.stdout

            elif handler["sink"] == "sys.stderr":
                handler["sink"] = sys.stderr

            elif isinstance(handler["sink"], str) and handler["sink"].endswith(".log"):
                handler["sink"] = os.path.join(
                    opts.get("folder", "logs"),
                    f"{datetime.now().strftime('%Y%m%d')}_{handler['sink']}",
                )

            handlers.append(handler)

        logger.configure(handlers=handlers)


def _ensure_key_property(cls):
    if not hasattr(cls, "key"):

        def key(self) -> str:
            return getattr(self, "_registry_key", "unknown")

        cls.key = property(key)
    return cls


class Registry:
    items: dict = {}

    @classmethod
    def get(cls, key: str) -> Any | None:
        if key not in cls.items:
            raise KeyError(f"{key} is not registered")
        return cls.items.get(key)

    @classmethod
    def register(cls, **args) -> Callable[..., Any]:
        def decorator(fn_or_class):
            key: str = args.get("key") or fn_or_class.__name__
            if args.get("type") == "function":
                fn_or_class = fn_or_class()
            else:
                setattr(fn_or_class, "_registry_key", key)
                fn_or_class = _ensure_key_property(fn_or_class)

            cls.items[key] = fn_or_class
            return fn_or_class

        return decorator

    @classmethod
    def is_registered(cls, key: str) -> bool:
        return key in cls.items


def load_resource_yaml(key: str) -> dict[str, Any] | None:
    """Loads a resource YAML file from the resources folder."""

    resource_path: str = os.path.join(os.path.dirname(__file__), "resources", f"{key}.yaml")
    if not os.path.exists(resource_path):
        return None

    with open(resource_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)
