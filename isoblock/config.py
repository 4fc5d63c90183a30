# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Engine configuration.

Sources, lowest precedence first:
- built-in defaults,
- a JSON object file (`EngineConfig.from_file`),
- `ISOBLOCK_*` environment variables (`EngineConfig.from_env`); when
  `ISOBLOCK_CONFIG` names a file it is loaded first and the remaining
  variables override it.

Unknown keys and ill-typed values raise `ConfigError`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from isoblock.errors import ConfigError

ENV_PREFIX = "ISOBLOCK_"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineConfig:
	body_cache_size: int = 256
	max_clone_depth: int = 128
	require_signatures: bool = False
	log_level: str = "WARNING"

	def __post_init__(self) -> None:
		if type(self.body_cache_size) is not int or self.body_cache_size < 0:
			raise ConfigError("body_cache_size must be a non-negative integer")
		if type(self.max_clone_depth) is not int or self.max_clone_depth < 1:
			raise ConfigError("max_clone_depth must be a positive integer")
		if type(self.require_signatures) is not bool:
			raise ConfigError("require_signatures must be a boolean")
		if not isinstance(self.log_level, str) or self.log_level.upper() not in _LOG_LEVELS:
			raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
		object.__setattr__(self, "log_level", self.log_level.upper())

	@property
	def logging_level(self) -> int:
		return logging.getLevelName(self.log_level)

	def merged(self, overrides: Mapping[str, Any]) -> "EngineConfig":
		"""Return a copy with `overrides` applied; keys must be known fields."""
		known = {f.name for f in fields(self)}
		unknown = sorted(set(overrides) - known)
		if unknown:
			raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")
		return replace(self, **dict(overrides))

	@classmethod
	def from_mapping(cls, obj: Mapping[str, Any]) -> "EngineConfig":
		return cls().merged(obj)

	@classmethod
	def from_file(cls, path: Path | str) -> "EngineConfig":
		"""Load a JSON object file."""
		path = Path(path)
		try:
			obj = json.loads(path.read_text(encoding="utf-8"))
		except FileNotFoundError as err:
			raise ConfigError(f"config file not found: {path}") from err
		except json.JSONDecodeError as err:
			raise ConfigError(f"config file {path} is not valid JSON: {err.msg}") from err
		if not isinstance(obj, dict):
			raise ConfigError(f"config file {path} must contain a JSON object")
		return cls.from_mapping(obj)

	@classmethod
	def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineConfig":
		env = os.environ if environ is None else environ
		base = cls.from_file(env[ENV_PREFIX + "CONFIG"]) if env.get(ENV_PREFIX + "CONFIG") else cls()
		overrides: dict[str, Any] = {}
		for f in fields(cls):
			raw = env.get(ENV_PREFIX + f.name.upper())
			if raw is None:
				continue
			overrides[f.name] = _coerce_env(f.name, raw, type(getattr(base, f.name)))
		return base.merged(overrides)


def _coerce_env(name: str, raw: str, kind: type) -> Any:
	text = raw.strip()
	if kind is bool:
		if text.lower() in _TRUE_WORDS:
			return True
		if text.lower() in _FALSE_WORDS:
			return False
		raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got {raw!r}")
	if kind is int:
		try:
			return int(text)
		except ValueError as err:
			raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from err
	return text


__all__ = ["ENV_PREFIX", "EngineConfig"]
