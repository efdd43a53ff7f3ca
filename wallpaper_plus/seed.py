"""
Sample data for a fresh database, and helpers to load or wipe it.
"""

from __future__ import annotations

import copy
import logging

from wallpaper_plus.db import TreeStore

logger = logging.getLogger(__name__)

UNSPLASH = "https://images.unsplash.com"
ANIME_IMAGE = "https://wallpaper-pulse-debduti-sardar-2024.s3.eu-north-1.amazonaws.com/anime/mainbg_3.jpg"


def _seed_wallpaper(title, image, category, tags, author, downloads, views, featured, created):
    return {
        "title": title,
        "imageUrl": image,
        "category": category,
        "resolution": "4K",
        "tags": tags,
        "uploadedBy": "system",
        "author": author,
        "downloads": downloads,
        "views": views,
        "featured": featured,
        "createdAt": created,
        "updatedAt": created,
    }


SEED_DATA = {
    "categories": {
        "animals": {
            "name": "Animals",
            "slug": "animals",
            "description": "Beautiful wildlife and pet wallpapers",
            "thumbnailUrl": f"{UNSPLASH}/photo-1547036967-23d11aacaee0?w=400&h=300&fit=crop",
            "wallpaperCount": 245,
            "color": "#10B981",
            "featured": True,
            "order": 1,
        },
        "anime": {
            "name": "Anime",
            "slug": "anime",
            "description": "Stunning anime art and characters",
            "thumbnailUrl": ANIME_IMAGE,
            "wallpaperCount": 892,
            "color": "#F59E0B",
            "featured": True,
            "order": 2,
        },
        "nature": {
            "name": "Nature",
            "slug": "nature",
            "description": "Beautiful landscapes and natural scenery",
            "thumbnailUrl": f"{UNSPLASH}/photo-1506905925346-21bda4d32df4?w=400&h=300&fit=crop",
            "wallpaperCount": 1247,
            "color": "#10B981",
            "featured": True,
            "order": 3,
        },
        "space": {
            "name": "Space",
            "slug": "space",
            "description": "Cosmic views and celestial beauty",
            "thumbnailUrl": f"{UNSPLASH}/photo-1446776877081-d282a0f896e2?w=400&h=300&fit=crop",
            "wallpaperCount": 421,
            "color": "#8B5CF6",
            "featured": True,
            "order": 4,
        },
        "cars-bikes": {
            "name": "Cars & Bikes",
            "slug": "cars-bikes",
            "description": "Vehicles and automotive wallpapers",
            "thumbnailUrl": f"{UNSPLASH}/photo-1492144534655-ae79c964c9d7?w=400&h=300&fit=crop",
            "wallpaperCount": 156,
            "color": "#EF4444",
            "featured": False,
            "order": 5,
        },
        "gaming": {
            "name": "Gaming",
            "slug": "gaming",
            "description": "Video game characters and scenes",
            "thumbnailUrl": f"{UNSPLASH}/photo-1493711662062-fa541adb3fc8?w=400&h=300&fit=crop",
            "wallpaperCount": 634,
            "color": "#6366F1",
            "featured": False,
            "order": 6,
        },
    },
    "wallpapers": {
        "wallpaper_1": _seed_wallpaper(
            "Mountain Landscape",
            f"{UNSPLASH}/photo-1506905925346-21bda4d32df4?w=400&h=700&fit=crop",
            "Nature", ["mountain", "landscape", "nature"], "Nature Photographer",
            15420, 25680, True, "2024-01-15T10:30:00Z",
        ),
        "wallpaper_2": _seed_wallpaper(
            "Space Galaxy",
            f"{UNSPLASH}/photo-1446776877081-d282a0f896e2?w=400&h=700&fit=crop",
            "Space", ["space", "galaxy", "stars"], "Space Explorer",
            18920, 32150, True, "2024-01-13T09:20:00Z",
        ),
        "wallpaper_3": _seed_wallpaper(
            "Ocean Waves",
            f"{UNSPLASH}/photo-1505142468610-359e7d316be0?w=400&h=700&fit=crop",
            "Nature", ["ocean", "waves", "beach"], "Ocean Photographer",
            12340, 19800, False, "2024-01-14T15:45:00Z",
        ),
        "wallpaper_4": _seed_wallpaper(
            "Anime Character",
            ANIME_IMAGE,
            "Anime", ["anime", "character", "art"], "Anime Artist",
            8920, 15600, True, "2024-01-12T11:15:00Z",
        ),
        "wallpaper_5": _seed_wallpaper(
            "Forest Path",
            f"{UNSPLASH}/photo-1441974231531-c6227db76b6e?w=400&h=700&fit=crop",
            "Nature", ["forest", "path", "trees"], "Forest Explorer",
            9560, 14200, False, "2024-01-11T08:30:00Z",
        ),
        "wallpaper_6": _seed_wallpaper(
            "Wild Tiger",
            f"{UNSPLASH}/photo-1547036967-23d11aacaee0?w=400&h=700&fit=crop",
            "Animals", ["tiger", "wildlife", "animals"], "Wildlife Photographer",
            7820, 12900, False, "2024-01-10T16:20:00Z",
        ),
    },
    "settings": {
        "featuredWallpapers": ["wallpaper_1", "wallpaper_2", "wallpaper_4"],
        "maxUploadsPerUser": 50,
        "allowedFileTypes": [".jpg", ".jpeg", ".png", ".webp"],
        "maxFileSize": 52428800,
        "maintenanceMode": False,
        "announcementBanner": {
            "enabled": True,
            "message": "Welcome to Wallpaper Plus! Discover amazing wallpapers.",
            "type": "info",
        },
    },
}


def seed_database(store: TreeStore) -> dict:
    """Overwrite categories, wallpapers and settings with the sample data."""
    logger.info("Starting database seeding")
    for section in ("categories", "wallpapers", "settings"):
        store.set(section, copy.deepcopy(SEED_DATA[section]))
        logger.info("Seeded %s", section)
    return {
        "success": True,
        "message": "Database seeded successfully",
        "data": {
            "categories": len(SEED_DATA["categories"]),
            "wallpapers": len(SEED_DATA["wallpapers"]),
            "settings": 1,
        },
    }


def clear_database(store: TreeStore) -> dict:
    """Remove every node in the tree."""
    logger.warning("Clearing database")
    store.set("", None)
    return {"success": True, "message": "Database cleared successfully"}
