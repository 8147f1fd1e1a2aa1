"""Settings for llmsend.

Settings are read from YAML, later files overriding earlier ones:
- $LLMSEND_HOME/settings.yaml (global)
- <workspace>/.lazy-llm/settings.yaml (per workspace)

Tool quirks (paste ingestion delays, submit retry) live in `tools:` profiles.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml  # type: ignore

from ..errors import ConfigError
from ..paths import llmsend_home, workspace_state_dir
from ..util.conv import coerce_bool, coerce_float, coerce_int


@dataclass
class ToolProfile:
    """Delivery parameters for one assistant CLI."""
    name: str
    large_payload_threshold: int = 1024
    large_payload_delay: float = 0.5
    delay_per_kb: float = 0.1
    max_payload_delay: float = 3.0
    submit_key: str = "Enter"
    submit_retry: bool = True
    ack_timeout: float = 1.5
    retry_delay: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "large_payload_threshold": self.large_payload_threshold,
            "large_payload_delay": self.large_payload_delay,
            "delay_per_kb": self.delay_per_kb,
            "max_payload_delay": self.max_payload_delay,
            "submit_key": self.submit_key,
            "submit_retry": self.submit_retry,
            "ack_timeout": self.ack_timeout,
            "retry_delay": self.retry_delay,
        }

    @classmethod
    def from_dict(cls, name: str, d: Dict[str, Any], *, base: Optional["ToolProfile"] = None) -> "ToolProfile":
        b = base or cls(name=name)
        return cls(
            name=name,
            large_payload_threshold=coerce_int(
                d.get("large_payload_threshold", b.large_payload_threshold),
                default=b.large_payload_threshold,
                min_value=0,
                max_value=10_000_000,
            ),
            large_payload_delay=coerce_float(d.get("large_payload_delay", b.large_payload_delay), default=b.large_payload_delay),
            delay_per_kb=coerce_float(d.get("delay_per_kb", b.delay_per_kb), default=b.delay_per_kb),
            max_payload_delay=coerce_float(d.get("max_payload_delay", b.max_payload_delay), default=b.max_payload_delay),
            submit_key=str(d.get("submit_key") or b.submit_key).strip() or "Enter",
            submit_retry=coerce_bool(d.get("submit_retry"), default=b.submit_retry),
            ack_timeout=coerce_float(d.get("ack_timeout", b.ack_timeout), default=b.ack_timeout),
            retry_delay=coerce_float(d.get("retry_delay", b.retry_delay), default=b.retry_delay),
        )

    def submit_delay(self, payload_bytes: int) -> float:
        """Pause before the submit key so the receiver finishes ingesting a paste."""
        if payload_bytes <= self.large_payload_threshold:
            return 0.0
        extra_kb = (payload_bytes - self.large_payload_threshold) / 1024.0
        return min(self.max_payload_delay, self.large_payload_delay + self.delay_per_kb * extra_kb)


# Built-in profiles (used when no settings.yaml overrides them)
DEFAULT_TOOL_PROFILES: List[ToolProfile] = [
    ToolProfile(name="default"),
    ToolProfile(name="claude"),
    # Gemini CLI is slow to settle after multi-line pastes.
    ToolProfile(name="gemini", large_payload_threshold=512, large_payload_delay=1.0, delay_per_kb=0.2, retry_delay=1.5),
    ToolProfile(name="codex", large_payload_delay=0.8),
]


@dataclass
class Settings:
    tool: str = "claude"
    clear_on_send: bool = True
    filtered_send: bool = True
    history_lines: int = 10000
    log_level: str = "WARNING"
    tools: Dict[str, ToolProfile] = field(default_factory=lambda: {p.name: p for p in DEFAULT_TOOL_PROFILES})

    def profile(self, name: Optional[str] = None) -> ToolProfile:
        key = str(name or self.tool or "").strip().lower()
        return self.tools.get(key) or self.tools.get("default") or ToolProfile(name="default")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool,
            "clear_on_send": self.clear_on_send,
            "filtered_send": self.filtered_send,
            "history_lines": self.history_lines,
            "log_level": self.log_level,
            "tools": {name: p.to_dict() for name, p in self.tools.items()},
        }

    def merge(self, raw: Dict[str, Any]) -> "Settings":
        if "tool" in raw:
            self.tool = str(raw.get("tool") or self.tool).strip().lower() or self.tool
        if "clear_on_send" in raw:
            self.clear_on_send = coerce_bool(raw.get("clear_on_send"), default=self.clear_on_send)
        if "filtered_send" in raw:
            self.filtered_send = coerce_bool(raw.get("filtered_send"), default=self.filtered_send)
        if "history_lines" in raw:
            self.history_lines = coerce_int(raw.get("history_lines"), default=self.history_lines, min_value=100, max_value=1_000_000)
        if "log_level" in raw:
            self.log_level = str(raw.get("log_level") or self.log_level).strip().upper() or self.log_level
        tools = raw.get("tools")
        if isinstance(tools, dict):
            for name, body in tools.items():
                key = str(name or "").strip().lower()
                if not key or not isinstance(body, dict):
                    continue
                self.tools[key] = ToolProfile.from_dict(key, body, base=self.tools.get(key) or self.tools.get("default"))
        return self


def settings_paths(workspace: Optional[Path] = None) -> List[Path]:
    return [llmsend_home() / "settings.yaml", workspace_state_dir(workspace) / "settings.yaml"]


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read settings file {path}: {e}", details={"path": str(path)}) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"settings file {path} must contain a mapping", details={"path": str(path)})
    return data


def load_settings(workspace: Optional[Path] = None) -> Settings:
    """Defaults, then global then workspace YAML, then environment overrides."""
    settings = Settings()
    for p in settings_paths(workspace):
        settings.merge(_load_yaml(p))
    env_tool = os.environ.get("LLMSEND_TOOL", "").strip()
    if env_tool:
        settings.tool = env_tool.lower()
    env_level = os.environ.get("LLMSEND_LOG_LEVEL", "").strip()
    if env_level:
        settings.log_level = env_level.upper()
    return settings


def dump_settings(settings: Settings) -> str:
    return yaml.safe_dump(settings.to_dict(), sort_keys=False, allow_unicode=True)
