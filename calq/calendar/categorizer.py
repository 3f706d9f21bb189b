"""Keyword categorizer for calendar event titles

Maps a free-text title to one of a fixed set of life categories. The table
order is significant: the first category with a keyword contained in the
lower-cased title wins, so "Client dinner" is work, not date.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Category(str, Enum):
    """Event categories, in matching order.

    Extends str so JSON serialization produces the raw label ("work").
    """

    WORK = "work"
    BRAND = "brand"
    RESEARCH = "research"
    HOLIDAY = "holiday"
    DATE = "date"
    CHILDCARE = "childcare"


@dataclass(frozen=True)
class CategoryStyle:
    keywords: tuple[str, ...]
    color: str
    emoji: str


FALLBACK_CATEGORY = Category.RESEARCH

CATEGORY_TABLE: dict[Category, CategoryStyle] = {
    Category.WORK: CategoryStyle(
        keywords=(
            "work",
            "meeting",
            "office",
            "client",
            "call",
            "conference",
            "standup",
            "review",
            "interview",
            "presentation",
        ),
        color="#007AFF",
        emoji="💼",
    ),
    Category.BRAND: CategoryStyle(
        keywords=("writing", "posting", "reaching out"),
        color="#34C759",
        emoji="🚀",
    ),
    Category.RESEARCH: CategoryStyle(
        keywords=(
            "research",
            "study",
            "analysis",
            "experiment",
            "investigation",
            "learning",
            "course",
            "workshop",
            "reading",
            "explore",
        ),
        color="#8E8E93",
        emoji="🔬",
    ),
    Category.HOLIDAY: CategoryStyle(
        keywords=(
            "holiday",
            "vacation",
            "trip",
            "travel",
            "flight",
            "hotel",
            "beach",
            "resort",
            "getaway",
            "break",
        ),
        color="#FFCC00",
        emoji="🏖️",
    ),
    Category.DATE: CategoryStyle(
        keywords=(
            "date",
            "dinner",
            "romantic",
            "anniversary",
            "restaurant",
            "movie",
            "theatre",
            "couples",
            "wine",
            "spa",
        ),
        color="#FF69B4",
        emoji="💕",
    ),
    Category.CHILDCARE: CategoryStyle(
        keywords=(
            "seb",
            "sebastian",
            "school",
            "pickup",
            "practice",
            "doctor",
            "pediatric",
            "soccer",
            "swimming",
            "playdate",
            "birthday party",
            "recital",
            "parent-teacher",
            "homework",
        ),
        color="#AF52DE",
        emoji="👦",
    ),
}


def categorize(title: str | None) -> Category:
    """
    Categorize an event by its title

    Args:
        title: Event title, possibly empty or None

    Returns:
        First category (in table order) with a keyword contained in the
        lower-cased title, else FALLBACK_CATEGORY
    """
    if not title:
        return FALLBACK_CATEGORY

    lowered = title.lower()
    for category, style in CATEGORY_TABLE.items():
        for keyword in style.keywords:
            if keyword in lowered:
                return category

    return FALLBACK_CATEGORY


def _style_of(category: Category | str | None) -> CategoryStyle:
    try:
        return CATEGORY_TABLE[Category(category)]
    except ValueError:
        return CATEGORY_TABLE[FALLBACK_CATEGORY]


def color_of(category: Category | str | None) -> str:
    """Display color; unknown labels get the fallback category's color."""
    return _style_of(category).color


def emoji_of(category: Category | str | None) -> str:
    """Display emoji; unknown labels get the fallback category's emoji."""
    return _style_of(category).emoji


def get_categories() -> list[dict[str, object]]:
    """Full table for the UI legend, in matching order."""
    return [
        {
            "name": category.value,
            "keywords": list(style.keywords),
            "color": style.color,
            "emoji": style.emoji,
            "fallback": category is FALLBACK_CATEGORY,
        }
        for category, style in CATEGORY_TABLE.items()
    ]
