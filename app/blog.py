# app/blog.py
"""Turns a finished transcript into a stored blog post."""
from __future__ import annotations

import json
import logging
import math
import re

import httpx
from sqlalchemy.orm import sessionmaker

from app.db import SessionLocal
from app.errors import DownstreamTriggerFailed
from app.models import BlogPost, BlogStatus, VideoRecord
from app.settings import settings

logger = logging.getLogger(__name__)

_TR_MAP = str.maketrans({"ğ": "g", "ü": "u", "ş": "s", "ı": "i", "ö": "o", "ç": "c"})

SYSTEM_PROMPT = (
    "You write blog posts from video transcripts. Reply with STRICT JSON only, keys: "
    "title (string), content (markdown string), excerpt (string, max 150 chars), category (string)."
)


def generate_slug(title: str) -> str:
    slug = title.lower().translate(_TR_MAP)
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def make_excerpt(content: str, limit: int = 150) -> str:
    return content if len(content) <= limit else content[:limit] + "..."


def read_time_minutes(content: str) -> int:
    return max(1, math.ceil(len(content.split()) / 200))


def _strip_json(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:].lstrip()
    return text


class BlogCreator:
    """Drafts a post with an OpenAI-compatible chat endpoint and stores it."""

    def __init__(self, session_factory: sessionmaker = SessionLocal, base_url: str | None = None,
                 api_key: str | None = None, model: str | None = None,
                 *, transport: httpx.AsyncBaseTransport | None = None):
        self.session_factory = session_factory
        self.base_url = (base_url or settings.BLOG_LLM_URL or "").rstrip("/")
        self.api_key = api_key or settings.BLOG_LLM_API_KEY
        self.model = model or settings.BLOG_LLM_MODEL
        self.transport = transport

    async def draft(self, title: str, transcript: str) -> dict:
        if not self.base_url:
            raise DownstreamTriggerFailed("BLOG_LLM_URL is not configured")
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = {
            "model": self.model,
            "temperature": 0.4,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Video title: {title}\n\nTranscript:\n{transcript[:12000]}"},
            ],
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=120) as client:
                resp = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            resp.raise_for_status()
            text = resp.json()["choices"][0]["message"]["content"]
            data = json.loads(_strip_json(text))
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            raise DownstreamTriggerFailed(f"blog draft failed: {e}") from e
        if not isinstance(data, dict) or not data.get("content"):
            raise DownstreamTriggerFailed("blog draft came back without content")
        return data

    async def create_blog_from_transcript(self, video: VideoRecord, publish: bool = False) -> int:
        title = video.title or f"Video {video.id}"
        data = await self.draft(title, video.transcript or "")
        post_title = data.get("title") or title
        content = data["content"]
        post = BlogPost(
            title=post_title,
            slug=generate_slug(post_title),
            content=content,
            excerpt=data.get("excerpt") or make_excerpt(content),
            category=data.get("category") or settings.BLOG_DEFAULT_CATEGORY,
            status=BlogStatus.published if publish else BlogStatus.draft,
            read_time_min=read_time_minutes(content),
            video_id=video.id,
        )
        with self.session_factory() as db:
            db.add(post)
            db.commit()
            db.refresh(post)
            logger.info("blog post %s created from video %s (%s)", post.id, video.id, post.status.value)
            return post.id
