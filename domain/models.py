from typing import Any, Mapping

import markdown2  # pyright: ignore[reportMissingTypeStubs]


RECIPE_FIELDS = (
    "id",
    "title",
    "slug",
    "description",
    "content_markdown",
    "prep_time",
    "cook_time",
    "servings_default",
    "difficulty",
    "image_url",
    "source_name",
    "source_url",
    "source_language",
    "notes",
    "notes_updated_at",
    "is_favorite",
    "created_at",
    "updated_at",
)

# Fields a client may change through an update.
EDITABLE_RECIPE_FIELDS = (
    "title",
    "description",
    "content_markdown",
    "prep_time",
    "cook_time",
    "servings_default",
    "difficulty",
    "image_url",
    "source_name",
    "source_url",
    "notes",
    "is_favorite",
)

SUMMARY_FIELDS = (
    "id",
    "title",
    "slug",
    "image_url",
    "prep_time",
    "cook_time",
    "servings_default",
    "difficulty",
)

DIFFICULTIES = ("easy", "medium", "hard")


class Recipe:
    def __init__(
        self,
        *,
        id: str,
        title: str,
        slug: str,
        content_markdown: str = "",
        servings_default: int = 4,
        description: str | None = None,
        prep_time: int | None = None,
        cook_time: int | None = None,
        difficulty: str | None = None,
        image_url: str | None = None,
        source_name: str | None = None,
        source_url: str | None = None,
        source_language: str | None = None,
        notes: str | None = None,
        notes_updated_at: str | None = None,
        is_favorite: bool = False,
        created_at: str | None = None,
        updated_at: str | None = None,
    ) -> None:
        self.id = id
        self.title = title
        self.slug = slug
        self.content_markdown = content_markdown
        self.servings_default = servings_default
        self.description = description
        self.prep_time = prep_time
        self.cook_time = cook_time
        self.difficulty = difficulty
        self.image_url = image_url
        self.source_name = source_name
        self.source_url = source_url
        self.source_language = source_language
        self.notes = notes
        self.notes_updated_at = notes_updated_at
        self.is_favorite = is_favorite
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Recipe":
        return cls(**{name: row[name] for name in RECIPE_FIELDS})

    def __repr__(self) -> str:
        return f"<Recipe(id={self.id}, slug={self.slug})>"

    @property
    def html(self) -> str:
        return markdown2.markdown(  # pyright: ignore[reportUnknownVariableType, reportUnknownMemberType]
            self.content_markdown or "", extras=["fenced-code-blocks", "tables"]
        )

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in RECIPE_FIELDS}

    def summary(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in SUMMARY_FIELDS}
