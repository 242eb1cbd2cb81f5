from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pokedex.settings import DEFAULT_IMAGE_BASE_URL

ARTWORK_PATH = "sprites/pokemon/other/official-artwork"


def slug_from_url(url: str) -> str:
    """Return the last non-empty path segment of a catalog resource URL."""

    slug = url.rstrip("/").rsplit("/", 1)[-1].strip()
    if not slug:
        raise ValueError(f"Cannot derive a slug from {url!r}")
    return slug


def artwork_url(slug: str | int, image_base_url: str = DEFAULT_IMAGE_BASE_URL) -> str:
    return f"{image_base_url.rstrip('/')}/{ARTWORK_PATH}/{slug}.png"


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------
class ListItem(BaseModel):
    """Catalog entry shown in the list.

    ``slug`` and ``image_url`` are computed once when the entry is ingested from
    the API (see :meth:`from_resource`) and stored alongside the raw URL.
    Equality and hashing only consider ``slug``.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    slug: str
    url: str
    image_url: str

    @field_validator("slug")
    @classmethod
    def _slug_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("slug must not be blank")
        return value

    @classmethod
    def from_resource(
        cls, name: str, url: str, *, image_base_url: str = DEFAULT_IMAGE_BASE_URL
    ) -> "ListItem":
        slug = slug_from_url(url)
        return cls(
            name=name,
            slug=slug,
            url=url,
            image_url=artwork_url(slug, image_base_url),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ListItem):
            return NotImplemented
        return self.slug == other.slug

    def __hash__(self) -> int:
        return hash(self.slug)


class ItemDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    base_experience: int = 0
    height: int
    weight: int
    image_url: str

    @field_validator("base_experience", mode="before")
    @classmethod
    def _missing_experience_is_zero(cls, value: object) -> object:
        # Some alternate forms report ``null`` experience.
        return 0 if value is None else value

    @property
    def height_m(self) -> float:
        """Height in metres (the API reports decimetres)."""

        return self.height / 10

    @property
    def weight_kg(self) -> float:
        """Weight in kilograms (the API reports hectograms)."""

        return self.weight / 10


class CatalogPage(BaseModel):
    items: list[ListItem] = Field(default_factory=list)
    has_next: bool = False


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------
class NamedResource(BaseModel):
    name: str
    url: str


class CatalogPagePayload(BaseModel):
    """Body of ``GET /{resource}?limit=&offset=``."""

    count: int = 0
    next: str | None = None
    previous: str | None = None
    results: list[NamedResource] = Field(default_factory=list)


class OfficialArtwork(BaseModel):
    front_default: str | None = None


class OtherSprites(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    official_artwork: OfficialArtwork | None = Field(default=None, alias="official-artwork")


class Sprites(BaseModel):
    other: OtherSprites | None = None


class ItemDetailPayload(BaseModel):
    """Body of ``GET /{resource}/{id}``; unknown keys are ignored."""

    id: int
    name: str
    base_experience: int | None = None
    height: int
    weight: int
    sprites: Sprites | None = None

    def to_detail(self, *, image_base_url: str = DEFAULT_IMAGE_BASE_URL) -> ItemDetail:
        image_url: str | None = None
        if self.sprites and self.sprites.other and self.sprites.other.official_artwork:
            image_url = self.sprites.other.official_artwork.front_default
        return ItemDetail(
            id=self.id,
            name=self.name,
            base_experience=self.base_experience,
            height=self.height,
            weight=self.weight,
            image_url=image_url or artwork_url(self.id, image_base_url),
        )
