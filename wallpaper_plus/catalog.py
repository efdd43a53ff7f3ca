"""
Category operations and the built-in category catalog.
"""

from __future__ import annotations

from typing import Optional

from wallpaper_plus.db import TreeStore
from wallpaper_plus.records import now_iso

CATEGORIES = "categories"


def _category(slug, name, description, color, icon, wallpaper_count):
    return {
        "id": slug,
        "name": name,
        "slug": slug,
        "description": description,
        "color": color,
        "icon": icon,
        "wallpaperCount": wallpaper_count,
    }


# Shown when the store has no record for a slug.
BUILTIN_CATEGORIES = [
    _category("animals", "Animals", "Wildlife, pets, and beautiful animal photography", "#10B981", "🐾", 1247),
    _category("anime", "Anime", "Japanese animation art and characters", "#EC4899", "🎌", 2156),
    _category("cars-bikes", "Cars & Bikes", "Vehicles, motorcycles, and automotive art", "#EF4444", "🚗", 892),
    _category("cartoons", "Cartoons", "Animated characters and cartoon art", "#F59E0B", "🎨", 756),
    _category("celebs", "Celebs", "Famous personalities and celebrities", "#8B5CF6", "⭐", 634),
    _category("comics", "Comics", "Comic book heroes and graphic art", "#3B82F6", "💥", 923),
    _category("food", "Food", "Delicious food photography and culinary art", "#F97316", "🍕", 421),
    _category("gaming", "Gaming", "Video games, characters, and gaming artwork", "#06B6D4", "🎮", 1834),
    _category("movies", "Movies", "Film posters, scenes, and movie artwork", "#DC2626", "🎬", 1156),
    _category("music", "Music", "Musical instruments, artists, and music art", "#7C3AED", "🎵", 687),
    _category("nature", "Nature", "Landscapes, forests, mountains, and natural beauty", "#059669", "🌿", 2847),
    _category("space", "Space", "Cosmic views, planets, and astronomical wonders", "#1E40AF", "🚀", 734),
    _category("sports", "Sports", "Athletic moments, sports teams, and competitions", "#16A34A", "⚽", 542),
    _category("travels", "Travels", "Beautiful destinations and travel photography", "#0891B2", "✈️", 1324),
    _category("tv-shows", "TV Shows", "Television series, characters, and show artwork", "#BE185D", "📺", 896),
    _category("hd", "HD", "High definition and ultra HD wallpapers", "#7C2D12", "🔥", 3421),
]


class CategoryOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def get_all_categories(self) -> dict:
        return self.store.get(CATEGORIES) or {}

    def get_featured_categories(self) -> dict:
        return self.store.query_equal(CATEGORIES, "featured", True)

    def add_category(self, category_data: dict) -> str:
        return self.store.push(
            CATEGORIES,
            {**category_data, "wallpaperCount": 0, "createdAt": now_iso()},
        )

    def find_category(self, slug: str) -> Optional[dict]:
        """Stored category with this slug (or key), else the built-in entry."""
        wanted = slug.lower()
        for key, category in self.get_all_categories().items():
            if not isinstance(category, dict):
                continue
            if key.lower() == wanted or str(category.get("slug", "")).lower() == wanted:
                return {"id": key, **category}
        for category in BUILTIN_CATEGORIES:
            if category["slug"] == wanted:
                return dict(category)
        return None

    def list_categories(self) -> list[dict]:
        """Stored categories by `order`, or the built-in list when none are stored."""
        stored = [
            {"id": key, **category}
            for key, category in self.get_all_categories().items()
            if isinstance(category, dict)
        ]
        if not stored:
            return [dict(category) for category in BUILTIN_CATEGORIES]
        return sorted(stored, key=lambda c: (c.get("order") is None, c.get("order") or 0, c["id"]))
