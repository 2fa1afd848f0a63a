"""Simple JSON-based settings store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from models import CaptureSettings, TriggerKeyword, VoiceTriggerConfig

logger = logging.getLogger("voxterm.config")

CONFIG_DIR = Path.home() / ".config" / "voxterm"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CONFIG_DIR / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", ""))

    def set_api_key(self, key: str) -> None:
        data = self._read_all()
        data["api_key"] = key
        self._write_all(data)

    def get_hotkey(self) -> str:
        data = self._read_all()
        return str(data.get("hotkey", "Key.alt_l"))

    def set_hotkey(self, hotkey: str) -> None:
        data = self._read_all()
        data["hotkey"] = hotkey
        self._write_all(data)

    def get_cancel_key(self) -> str:
        data = self._read_all()
        return str(data.get("cancel_key", "Key.esc"))

    def get_language(self) -> str:
        data = self._read_all()
        return str(data.get("language") or "en")

    def set_language(self, language: str) -> None:
        data = self._read_all()
        data["language"] = language
        self._write_all(data)

    def get_commands_path(self) -> Path:
        data = self._read_all()
        value = data.get("commands_path")
        return Path(value).expanduser() if value else self._path.parent / "commands.json"

    def get_capture_settings(self) -> CaptureSettings:
        data = self._read_all()
        section = self._section(data, "capture")
        defaults = CaptureSettings()
        return CaptureSettings(
            language=self.get_language(),
            silence_threshold_s=float(section.get("silence_threshold_s", defaults.silence_threshold_s)),
            max_duration_s=float(section.get("max_duration_s", defaults.max_duration_s)),
            silence_level=float(section.get("silence_level", defaults.silence_level)),
        )

    def get_voice_trigger(self) -> VoiceTriggerConfig:
        data = self._read_all()
        section = self._section(data, "voice_trigger")
        defaults = VoiceTriggerConfig()
        keywords = defaults.keywords
        if isinstance(section.get("keywords"), list):
            keywords = []
            for raw in section["keywords"]:
                if not isinstance(raw, dict) or not isinstance(raw.get("phrase"), str):
                    logger.warning("ignoring malformed wake word entry: %r", raw)
                    continue
                keywords.append(
                    TriggerKeyword(
                        phrase=raw["phrase"],
                        boosting_score=float(raw.get("boosting_score", 1.5)),
                        trigger_threshold=float(raw.get("trigger_threshold", 0.35)),
                        enabled=bool(raw.get("enabled", True)),
                    )
                )
        return VoiceTriggerConfig(
            enabled=bool(section.get("enabled", defaults.enabled)),
            keywords=keywords,
            language=self.get_language(),
            silence_threshold_s=float(section.get("silence_threshold_s", defaults.silence_threshold_s)),
            max_duration_s=float(section.get("max_duration_s", defaults.max_duration_s)),
            silence_level=float(section.get("silence_level", defaults.silence_level)),
        )

    def set_voice_trigger(self, config: VoiceTriggerConfig) -> None:
        data = self._read_all()
        data["voice_trigger"] = {
            "enabled": config.enabled,
            "keywords": [
                {
                    "phrase": k.phrase,
                    "boosting_score": k.boosting_score,
                    "trigger_threshold": k.trigger_threshold,
                    "enabled": k.enabled,
                }
                for k in config.keywords
            ],
            "silence_threshold_s": config.silence_threshold_s,
            "max_duration_s": config.max_duration_s,
            "silence_level": config.silence_level,
        }
        self._write_all(data)

    def _section(self, data: dict, name: str) -> dict[str, Any]:
        section = data.get(name, {})
        if not isinstance(section, dict):
            logger.warning("config section %r is not an object, using defaults", name)
            return {}
        return section

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("unreadable settings at %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
