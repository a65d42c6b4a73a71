"""Category taxonomy operations.

These are pure mapping transformations. They never look at planned items:
removing a category leaves items that reference it untouched, which is how
orphaned references arise (see ``avkosten.domain.diagnostics``).
"""

from __future__ import annotations

from dataclasses import replace

from avkosten.domain.project import Project, Taxonomy


def add_category(taxonomy: Taxonomy, name: str, subcategories: tuple[str, ...] = ()) -> Taxonomy:
    """Append a category; no-op if the name is blank or already present."""
    name = name.strip()
    if not name or taxonomy.has_category(name):
        return taxonomy
    unique_subs: list[str] = []
    for sub in subcategories:
        sub = sub.strip()
        if sub and sub not in unique_subs:
            unique_subs.append(sub)
    return Taxonomy(taxonomy.categories + ((name, tuple(unique_subs)),))


def remove_category(taxonomy: Taxonomy, name: str) -> Taxonomy:
    """Drop a category together with all of its subcategories."""
    if not taxonomy.has_category(name):
        return taxonomy
    return Taxonomy(tuple((cat, subs) for cat, subs in taxonomy.categories if cat != name))


def add_subcategory(taxonomy: Taxonomy, category: str, subcategory: str) -> Taxonomy:
    """Append a subcategory; no-op if the category is missing or the name is a duplicate."""
    subcategory = subcategory.strip()
    if not subcategory or not taxonomy.has_category(category):
        return taxonomy
    if subcategory in taxonomy.subcategories(category):
        return taxonomy
    return Taxonomy(
        tuple((cat, subs + (subcategory,) if cat == category else subs) for cat, subs in taxonomy.categories)
    )


def remove_subcategory(taxonomy: Taxonomy, category: str, subcategory: str) -> Taxonomy:
    """Remove a subcategory; no-op if absent."""
    if subcategory not in taxonomy.subcategories(category):
        return taxonomy
    return Taxonomy(
        tuple(
            (cat, tuple(s for s in subs if s != subcategory) if cat == category else subs)
            for cat, subs in taxonomy.categories
        )
    )


def with_taxonomy(project: Project, taxonomy: Taxonomy) -> Project:
    """Return the project with its taxonomy replaced (identity if unchanged)."""
    if taxonomy == project.taxonomy:
        return project
    return replace(project, taxonomy=taxonomy)
