"""Typed view over the operator key/value settings.

Loaded fresh for every orchestration so a flag flipped between runs takes
effect on the next one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from app.settings import settings

TRUTHY = {"true", "1", "yes", "on"}


class SettingsSource(Protocol):
    def get_setting(self, key: str) -> str | None: ...


def parse_bool(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY


def parse_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass(frozen=True)
class FeatureFlags:
    auto_transcribe: bool = False
    auto_blog: bool = False
    auto_publish: bool = False
    default_provider: str = settings.DEFAULT_PROVIDER
    language: str = settings.DEFAULT_LANGUAGE
    audio_backends: list[str] = field(default_factory=lambda: list(settings.AUDIO_BACKENDS))

    @classmethod
    def load(cls, source: SettingsSource) -> "FeatureFlags":
        return cls(
            auto_transcribe=parse_bool(source.get_setting("auto_transcribe")),
            auto_blog=parse_bool(source.get_setting("auto_blog")),
            auto_publish=parse_bool(source.get_setting("auto_publish")),
            default_provider=source.get_setting("transcription_provider") or settings.DEFAULT_PROVIDER,
            language=source.get_setting("transcription_language") or settings.DEFAULT_LANGUAGE,
            audio_backends=parse_list(source.get_setting("audio_backends")) or list(settings.AUDIO_BACKENDS),
        )
