from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Dict, Sequence

from .config import relay_config_from_dict


SOURCE_KEYS = ("video", "webcam", "rtsp")
RUNNER_STR_KEYS = {"model", "metadata", "onnx_providers", "log_level"}
RUNNER_INT_KEYS = {"max_frames", "onnx_threads"}
RUNNER_BOOL_KEYS = {"show", "drain_on_exit"}


def load_run_config(path: Path) -> Dict[str, object]:
    if not path.exists():
        raise FileNotFoundError(f"Run config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid run config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Run config must be a JSON object")
    return payload


def collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> set[str]:
    """Dest names of the options given explicitly on the command line."""
    dests: set[str] = set()
    for opt, action in parser._option_string_actions.items():
        for arg in argv:
            if arg == opt or arg.startswith(f"{opt}="):
                dests.add(action.dest)
                break
    return dests


def apply_run_config(
    *,
    args: argparse.Namespace,
    payload: Dict[str, object],
    cli_dests: set[str],
) -> None:
    """
    Fill `args` from a run config payload. Values given on the command line win.

    Relay options (thresholds, delivery settings) are validated the same way as
    a standalone relay config file.
    """

    if "config" in payload:
        raise ValueError("run config must not include the 'config' key")

    relay_keys = {k: v for k, v in payload.items() if k not in RUNNER_STR_KEYS | RUNNER_INT_KEYS | RUNNER_BOOL_KEYS}
    source = relay_keys.pop("source", None)
    # validates names and types; raises ValueError on anything unknown
    relay_config_from_dict(relay_keys)

    if source is not None:
        if not isinstance(source, dict):
            raise ValueError("run config 'source' must be an object")
        source_unknown = sorted(k for k in source.keys() if k not in SOURCE_KEYS)
        if source_unknown:
            raise ValueError(f"Unknown run config source keys: {source_unknown}")
        non_empty = [k for k in SOURCE_KEYS if source.get(k) not in (None, "")]
        if len(non_empty) > 1:
            raise ValueError("run config 'source' must set only one of video/webcam/rtsp")
        if non_empty and not any(k in cli_dests for k in SOURCE_KEYS):
            key = non_empty[0]
            value = source[key]
            if key == "webcam":
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError("source.webcam must be an integer index")
            elif not isinstance(value, str):
                raise ValueError(f"source.{key} must be a non-empty string")
            setattr(args, key, value)

    for key, value in payload.items():
        if key == "source" or key in cli_dests:
            continue
        if key in RUNNER_STR_KEYS:
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"{key} must be a non-empty string")
        elif key in RUNNER_INT_KEYS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key} must be an integer")
        elif key in RUNNER_BOOL_KEYS:
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be a boolean")
        setattr(args, key, value)
