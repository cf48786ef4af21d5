"""Pydantic models describing library records and API payload fragments."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN = "Unknown"


def _position_text(value: object) -> object:
    """Render numeric series positions the way they are displayed, 2.0 as "2"."""

    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return value


class Record(BaseModel):
    """One catalog item, accumulated across enrichment phases.

    A field counts as enriched once it appears in ``model_fields_set``; an
    explicit ``None`` assigned by a phase is different from never having been
    assigned.
    """

    model_config = ConfigDict(validate_assignment=False)

    id: str = Field(frozen=True, min_length=1)
    title: str = ""
    authors: list[str] = Field(default_factory=lambda: [UNKNOWN])
    acquisition_type: str = ""
    acquisition_subtype: str = ""
    acquired_date: str = ""
    format: str | None = None
    page_count: int | None = None
    listening_length: str | None = None
    series_name: str | None = None
    series_title: str | None = None
    series_position: str | None = None
    genres: list[str] = Field(default_factory=list)
    sub_genres: list[str] = Field(default_factory=list)
    sort_key: str | None = Field(default=None, exclude=True)

    @field_validator("authors", mode="before")
    @classmethod
    def _ensure_authors(cls, value: object) -> object:
        if value is None:
            return [UNKNOWN]
        if isinstance(value, str):
            value = [value]
        if isinstance(value, (list, tuple)):
            cleaned = [str(name) for name in value if name]
            return cleaned or [UNKNOWN]
        return value

    @field_validator("series_position", mode="before")
    @classmethod
    def _stringify_position(cls, value: object) -> object:
        return _position_text(value)

    def has(self, field: str) -> bool:
        """Return whether ``field`` has been assigned, even to ``None``."""

        return field in self.model_fields_set

    @property
    def first_author(self) -> str:
        return self.authors[0] if self.authors else UNKNOWN


class PageInfo(BaseModel):
    """Cursor state returned alongside a page of results."""

    has_next: bool = False
    end_cursor: str = ""


class SubGenre(BaseModel):
    id: str
    name: str


class GenreNode(BaseModel):
    """A genre returned by the genre aggregation query."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    sub_genres: list[SubGenre] = Field(default_factory=list, alias="subGenre")

    @field_validator("sub_genres", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return value or []


class ProductDetails(BaseModel):
    """Details extracted for one product from a detail batch response."""

    id: str
    page_count: str | None = None
    listening_length: str | None = None
    series_title: str | None = None
    series_position: str | None = None
    detailed_format: str | None = None

    @field_validator("series_position", mode="before")
    @classmethod
    def _stringify_position(cls, value: object) -> object:
        return _position_text(value)

    @property
    def parsed_page_count(self) -> int | None:
        """Return the numeric part of a ``"<n> pages"`` string."""

        if not self.page_count:
            return None
        head = self.page_count.strip().split(" ")[0].replace(",", "")
        try:
            return int(head)
        except ValueError:
            return None


class ExportResult(BaseModel):
    """Outcome of one export run."""

    report: str
    record_count: int
    mode: str
