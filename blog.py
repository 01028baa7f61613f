"""Blog content store: one markdown file with YAML front-matter per post.

Files live in ``config.CONTENT_DIR`` and are named ``<slug>.md``. There is
no index; every listing reads and parses the whole directory.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from markdown import markdown
from slugify import slugify

import config
from errors import Conflict, ValidationFailed
from schemas import BLOG_CATEGORIES, DEFAULT_CATEGORY, BlogPost, PostCreate

logger = logging.getLogger(__name__)

UMLAUTS = [["ä", "ae"], ["ö", "oe"], ["ü", "ue"], ["ß", "ss"]]
SLUG_DISALLOWED = r"[^a-z0-9]+"


def generate_slug(text: str) -> str:
    """URL slug for a title: German umlauts transliterated, any other run of
    characters outside a-z0-9 (accented letters included) collapsed to a dash."""
    return slugify(
        (text or "").lower(),
        replacements=UMLAUTS,
        allow_unicode=True,
        regex_pattern=SLUG_DISALLOWED,
    )


def split_front_matter(raw: str) -> Tuple[Dict, str]:
    """Split ``raw`` into (metadata, body). A broken header yields ``{}``."""
    if not raw.startswith("---"):
        return {}, raw
    lines = raw.splitlines(keepends=True)
    for idx in range(1, len(lines)):
        if lines[idx].rstrip() == "---":
            header = "".join(lines[1:idx])
            body = "".join(lines[idx + 1:])
            try:
                data = yaml.safe_load(header) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Malformed front-matter, using defaults: {e}")
                data = {}
            if not isinstance(data, dict):
                data = {}
            return data, body.lstrip("\n")
    return {}, raw


def _parse_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"


class BlogStore:
    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory or config.CONTENT_DIR)

    def ensure_directory(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, slug: str) -> Path:
        return self.directory / f"{slug}.md"

    # Reading

    def _load(self, path: Path) -> BlogPost:
        raw = path.read_text(encoding="utf-8")
        data, body = split_front_matter(raw)

        published_at = _parse_datetime(data.get("publishedAt"))
        if published_at is None:
            published_at = datetime.utcfromtimestamp(path.stat().st_mtime)

        category = data.get("category")
        if not isinstance(category, str) or category not in BLOG_CATEGORIES:
            category = DEFAULT_CATEGORY
        cover = data.get("coverImage")

        tags = data.get("tags") or []
        if not isinstance(tags, list):
            tags = [tags]

        return BlogPost(
            slug=path.stem,
            title=str(data.get("title") or "Untitled"),
            excerpt=str(data.get("excerpt") or ""),
            content=body,
            author=str(data.get("author") or "Admin"),
            category=category,
            cover_image=str(cover) if cover else None,
            published_at=published_at,
            updated_at=_parse_datetime(data.get("updatedAt")),
            is_published=data.get("isPublished") is not False,
            tags=[str(t) for t in tags],
        )

    def list_all(self) -> List[BlogPost]:
        self.ensure_directory()
        posts = []
        for path in self.directory.glob("*.md"):
            try:
                posts.append(self._load(path))
            except OSError as e:
                logger.warning(f"Skipping unreadable post {path.name}: {e}")
            except (ValueError, TypeError) as e:
                # UnicodeDecodeError and pydantic ValidationError are ValueErrors
                logger.warning(f"Skipping malformed post {path.name}: {e}")
        return sorted(posts, key=lambda p: p.published_at, reverse=True)

    def list_published(self) -> List[BlogPost]:
        return [p for p in self.list_all() if p.is_published]

    def list_by_category(self, category: str) -> List[BlogPost]:
        return [p for p in self.list_published() if p.category == category]

    def get(self, slug: str) -> Optional[BlogPost]:
        self.ensure_directory()
        if not slug or generate_slug(slug) != slug:
            return None
        path = self._path(slug)
        if not path.is_file():
            return None
        return self._load(path)

    def render_html(self, post: BlogPost) -> str:
        return markdown(
            post.content or "",
            extensions=["fenced_code", "tables", "sane_lists"],
            output_format="html",
        )

    # Writing

    def _write(self, post: BlogPost) -> None:
        front = {
            "title": post.title,
            "excerpt": post.excerpt,
            "author": post.author,
            "category": post.category,
            "coverImage": post.cover_image,
            "publishedAt": _format_datetime(post.published_at),
            "updatedAt": _format_datetime(post.updated_at),
            "isPublished": post.is_published,
            "tags": list(post.tags),
        }
        front = {k: v for k, v in front.items() if v is not None}
        header = yaml.safe_dump(front, allow_unicode=True, sort_keys=False)
        text = f"---\n{header}---\n{post.content}"
        if not text.endswith("\n"):
            text += "\n"
        self._path(post.slug).write_text(text, encoding="utf-8")

    def create(self, payload: PostCreate) -> BlogPost:
        self.ensure_directory()
        slug = generate_slug(payload.slug or payload.title)
        if not slug:
            raise ValidationFailed("Aus dem Titel konnte kein Slug erzeugt werden.")
        if self._path(slug).exists():
            raise Conflict("Ein Beitrag mit diesem Slug existiert bereits.")

        post = BlogPost(
            slug=slug,
            title=payload.title.strip(),
            excerpt=payload.excerpt,
            content=payload.content,
            author=payload.author,
            category=payload.category,
            cover_image=payload.cover_image or None,
            published_at=datetime.utcnow(),
            is_published=payload.is_published,
            tags=payload.tags,
        )
        self._write(post)
        logger.info(f"Created post {slug}")
        return post

    def update(self, slug: str, changes: Dict) -> Optional[BlogPost]:
        existing = self.get(slug)
        if existing is None:
            return None
        merged = existing.model_dump()
        merged.update({k: v for k, v in changes.items() if k not in ("slug", "updated_at")})
        merged["slug"] = slug
        merged["updated_at"] = datetime.utcnow()
        post = BlogPost(**merged)
        self._write(post)
        logger.info(f"Updated post {slug}")
        return post

    def delete(self, slug: str) -> bool:
        self.ensure_directory()
        if not slug or generate_slug(slug) != slug:
            return False
        path = self._path(slug)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted post {slug}")
        return True


def get_blog_store() -> BlogStore:
    return BlogStore()
