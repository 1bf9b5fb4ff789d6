"""
Typer callback validators.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import typer

from cli.console import console
from config.settings import SIZE_PRESETS, cfg, parse_size
from imaging.colors import is_hex
from utils.exceptions import ConfigurationError


def validate_csv(path: Optional[Path]) -> Optional[Path]:
    """Validate that CSV file exists."""
    if path is None:
        return None
    if not path.exists():
        console.print(f"[error]CSV file not found: {path}[/]")
        raise typer.BadParameter(f"File not found: {path}")
    if not path.suffix == ".csv":
        console.print(f"[error]Not a CSV file: {path}[/]")
        raise typer.BadParameter(f"Not a CSV: {path}")
    return path


def validate_size(value: Optional[str]) -> Optional[str]:
    """``WIDTHxHEIGHT`` such as ``1200x628``."""
    if value is None:
        return None
    try:
        parse_size(value)
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from None
    return value


def validate_preset(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if value not in SIZE_PRESETS:
        raise typer.BadParameter(
            f"Unknown preset: {value}. Valid: {', '.join(SIZE_PRESETS)}"
        )
    return value


def validate_hex(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_hex(value):
        raise typer.BadParameter(f"Not a hex colour: {value}")
    return value


def parse_replacements(values: Optional[List[str]]) -> List[Tuple[str, str]]:
    """``["旧=新", ...]`` → ``[("旧", "新"), ...]``."""
    pairs: List[Tuple[str, str]] = []
    for raw in values or []:
        src, sep, dst = raw.partition("=")
        if not sep or not src:
            raise typer.BadParameter(f"Replacement must look like FROM=TO: {raw}")
        pairs.append((src, dst))
    return pairs


def resolve_canvas(size: Optional[str], preset: Optional[str]) -> Tuple[Tuple[int, int], Optional[int]]:
    """Canvas size plus the preset's safe margin (``None`` without a preset)."""
    if preset:
        dims, margin = SIZE_PRESETS[preset]
        return dims, margin
    if size:
        return parse_size(size), None
    return cfg.render.default_size, None
