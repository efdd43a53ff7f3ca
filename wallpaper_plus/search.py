"""
In-memory search, ranking and tag analytics over fetched wallpaper records.
"""

from __future__ import annotations

from typing import Iterable

from wallpaper_plus.records import Wallpaper, parse_iso

TRENDING_TAG_LIMIT = 20
POPULAR_TAG_LIMIT = 10
POPULAR_SEARCH_LIMIT = 15

SORT_OPTIONS = ("popular", "recent", "downloads", "title")


def _matches(wallpaper: Wallpaper, term: str) -> bool:
    for text in (wallpaper.title, wallpaper.category, wallpaper.author):
        if term in (text or "").lower():
            return True
    return any(term in tag.lower() for tag in wallpaper.tag_list)


def search_wallpapers(wallpapers: Iterable[dict], query: str) -> list[dict]:
    """
    Substring search over title, category, author and tags.

    Exact title matches rank first; everything else is ordered by view count.
    """
    if not query or not query.strip():
        return []
    term = query.lower().strip()

    hits: list[tuple[dict, Wallpaper]] = []
    for record in wallpapers:
        wallpaper = Wallpaper.from_tree(record)
        if _matches(wallpaper, term):
            hits.append((record, wallpaper))

    hits.sort(
        key=lambda hit: (
            (hit[1].title or "").lower() != term,
            -hit[1].view_count,
        )
    )
    return [record for record, _ in hits]


def search_analytics(wallpapers: Iterable[dict]) -> dict:
    """Trending tags and popular search suggestions from the current catalog."""
    tag_counts: dict[str, int] = {}
    categories: dict[str, None] = {}

    for record in wallpapers:
        wallpaper = Wallpaper.from_tree(record)
        if wallpaper.category:
            categories.setdefault(wallpaper.category.lower(), None)
        for tag in wallpaper.tag_list:
            normalized = tag.lower()
            tag_counts[normalized] = tag_counts.get(normalized, 0) + 1

    trending = sorted(
        ({"name": name, "count": count} for name, count in tag_counts.items()),
        key=lambda tag: -tag["count"],
    )[:TRENDING_TAG_LIMIT]

    popular = list(categories) + [tag["name"] for tag in trending[:POPULAR_TAG_LIMIT]]
    return {
        "trendingTags": trending,
        "popularSearches": popular[:POPULAR_SEARCH_LIMIT],
    }


def sort_wallpapers(wallpapers: Iterable[dict], option: str = "popular") -> list[dict]:
    records = list(wallpapers)
    if option == "recent":
        return sorted(records, key=lambda w: -parse_iso(w.get("uploadDate")))
    if option == "downloads":
        return sorted(records, key=lambda w: -Wallpaper.from_tree(w).download_count)
    if option == "title":
        return sorted(records, key=lambda w: (w.get("title") or "").lower())
    return sorted(records, key=lambda w: -Wallpaper.from_tree(w).view_count)


def to_card(record: dict) -> dict:
    """Listing shape used by grids: tags as a list and counters filled in."""
    wallpaper = Wallpaper.from_tree(record)
    return {
        "id": wallpaper.id,
        "title": wallpaper.title,
        "imageUrl": wallpaper.image_url,
        "category": wallpaper.category,
        "resolution": wallpaper.resolution or "HD",
        "downloads": wallpaper.download_count,
        "views": wallpaper.view_count,
        "tags": wallpaper.tag_list,
        "author": wallpaper.author,
    }
