"""
Database Schemas

Pydantic models for the documents stored in MongoDB.

Collections:
- poster (art posters sold through the catalog)
- websitecontent (bilingual display copy, keyed by page/section)
"""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Print configuration. Extend these to offer new options.
PAPER_TYPES = {"matte", "glossy", "canvas", "satin"}
FINISH_OPTIONS = {"none", "black", "white", "wood", "gold"}
SIZE_PATTERN = re.compile(r"^\d+(\.\d+)?x\d+(\.\d+)?$")

# Purchases weigh most and views least
POPULARITY_WEIGHTS = {"views": 0.1, "downloads": 2, "likes": 1.5, "sales": 5}


class LocalizedText(BaseModel):
    en: str = Field(..., description="English text")
    ta: str = Field("", description="Tamil text")

    @model_validator(mode="before")
    @classmethod
    def _from_plain_string(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"en": value, "ta": ""}
        return value


def _localized(value: Union[str, Dict[str, Any], LocalizedText]) -> LocalizedText:
    return LocalizedText.model_validate(value)


class Dimensions(BaseModel):
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    unit: str = "inches"


class FileInfo(BaseModel):
    url: str = ""
    format: str = "jpg"
    resolution: str = "300dpi"
    size: int = Field(0, ge=0, description="Size in bytes")
    colorSpace: str = "RGB"


class Pricing(BaseModel):
    basePrice: float = Field(..., ge=0)
    printPrice: float = Field(10.0, ge=0)
    discount: float = Field(0, ge=0, le=100, description="Percentage off basePrice")
    currency: str = "USD"


class Availability(BaseModel):
    isActive: bool = True
    isFeatured: bool = False
    isLimitedEdition: bool = False
    stock: int = Field(100, ge=0)
    unlimitedStock: bool = True


class PrintOptions(BaseModel):
    paperTypes: List[str] = Field(default_factory=lambda: ["matte", "glossy"])
    availableSizes: List[str] = Field(default_factory=lambda: ["12x16", "18x24"])
    finishOptions: List[str] = Field(default_factory=lambda: ["none", "black", "white"])

    @field_validator("paperTypes")
    @classmethod
    def _known_papers(cls, v: List[str]) -> List[str]:
        unknown = [p for p in v if p not in PAPER_TYPES]
        if unknown:
            raise ValueError(f"unknown paper types: {', '.join(unknown)}")
        return v

    @field_validator("finishOptions")
    @classmethod
    def _known_finishes(cls, v: List[str]) -> List[str]:
        unknown = [f for f in v if f not in FINISH_OPTIONS]
        if unknown:
            raise ValueError(f"unknown finish options: {', '.join(unknown)}")
        return v

    @field_validator("availableSizes")
    @classmethod
    def _size_format(cls, v: List[str]) -> List[str]:
        bad = [s for s in v if not SIZE_PATTERN.match(s)]
        if bad:
            raise ValueError(f"sizes must look like 12x18: {', '.join(bad)}")
        return v


class Stats(BaseModel):
    views: int = 0
    downloads: int = 0
    likes: int = 0
    sales: int = 0


class Seo(BaseModel):
    metaTitle: Optional[LocalizedText] = None
    metaDescription: Optional[LocalizedText] = None
    keywords: List[str] = Field(default_factory=list)


def _tag_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return value


class PosterCreate(BaseModel):
    title: LocalizedText
    description: LocalizedText
    artist: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    dimensions: Dimensions
    file: FileInfo = Field(default_factory=FileInfo)
    pricing: Pricing
    availability: Availability = Field(default_factory=Availability)
    printOptions: PrintOptions = Field(default_factory=PrintOptions)
    seo: Seo = Field(default_factory=Seo)

    @field_validator("category")
    @classmethod
    def _lower_category(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> Any:
        return _tag_list(v)

    @model_validator(mode="after")
    def _seo_defaults(self) -> "PosterCreate":
        if self.seo.metaTitle is None:
            self.seo.metaTitle = LocalizedText(en=f"{self.title.en} - Art Poster", ta=self.title.ta)
        if self.seo.metaDescription is None:
            self.seo.metaDescription = self.description.model_copy()
        if not self.seo.keywords:
            self.seo.keywords = list(self.tags)
        return self


class PosterUpdate(BaseModel):
    """Partial update. Nested objects are replaced whole, not merged."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    artist: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    dimensions: Optional[Dimensions] = None
    file: Optional[FileInfo] = None
    pricing: Optional[Pricing] = None
    availability: Optional[Availability] = None
    printOptions: Optional[PrintOptions] = None
    seo: Optional[Seo] = None
    stats: Optional[Stats] = None

    @field_validator("category")
    @classmethod
    def _lower_category(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v is not None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> Any:
        return _tag_list(v)


class ContentRecord(BaseModel):
    sectionKey: str = Field(..., description="Dotted identifier, e.g. home.heroTitle")
    page: Optional[str] = None
    section: Optional[str] = None
    content: Union[Dict[str, str], str] = Field(..., description="{english, tamil} text")

    @model_validator(mode="after")
    def _split_key(self) -> "ContentRecord":
        if "." in self.sectionKey and (self.page is None or self.section is None):
            page, section = self.sectionKey.split(".", 1)
            self.page = self.page or page
            self.section = self.section or section
        return self


# Pricing helpers

def discounted_price(pricing: Dict[str, Any]) -> float:
    base = float(pricing.get("basePrice") or 0)
    discount = float(pricing.get("discount") or 0)
    if discount > 0:
        return round(base * (1 - discount / 100), 2)
    return base


def savings(pricing: Dict[str, Any]) -> float:
    base = float(pricing.get("basePrice") or 0)
    return round(base - discounted_price(pricing), 2)


def popularity_score(stats: Optional[Dict[str, Any]]) -> float:
    stats = stats or {}
    return sum((stats.get(name) or 0) * weight for name, weight in POPULARITY_WEIGHTS.items())
