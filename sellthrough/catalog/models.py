"""
Catalog API payload models.

Only the fields the snapshot needs are modelled; everything else in the
Shopify payload is ignored.
"""

from typing import Annotated, Any, List, Optional, Set

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


def _external_id(value: Any) -> Any:
    # Shopify ids arrive as JSON numbers; they are opaque strings here
    if value is None or isinstance(value, str):
        return value
    return str(value)


ExternalId = Annotated[str, BeforeValidator(_external_id)]


def split_product_tags(raw: Any) -> List[str]:
    """Split a comma-separated tag string (or a list of tags) into trimmed lowercase tags"""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else [str(tag) for tag in raw]
    return [part.strip().lower() for part in parts if part and part.strip()]


class CatalogImage(BaseModel):
    """Product image"""
    model_config = ConfigDict(extra="ignore")

    id: Optional[ExternalId] = None
    src: Optional[str] = None
    variant_ids: List[ExternalId] = Field(default_factory=list)


class CatalogVariant(BaseModel):
    """Product variant"""
    model_config = ConfigDict(extra="ignore")

    id: ExternalId
    title: Optional[str] = None
    sku: Optional[str] = None
    inventory_item_id: Optional[ExternalId] = None
    image_id: Optional[ExternalId] = None


class CatalogProduct(BaseModel):
    """Catalog product with its variants and images"""
    model_config = ConfigDict(extra="ignore")

    id: ExternalId
    title: str = ""
    tags: str = ""
    variants: List[CatalogVariant] = Field(default_factory=list)
    images: List[CatalogImage] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def join_tag_list(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)):
            return ", ".join(str(tag) for tag in v)
        return v or ""

    @field_validator("title", mode="before")
    @classmethod
    def default_title(cls, v: Any) -> Any:
        return v or ""

    @property
    def tag_set(self) -> Set[str]:
        """Normalized tags of this product"""
        return set(split_product_tags(self.tags))

    def image_for(self, variant: CatalogVariant) -> Optional[str]:
        """
        Image URL for a variant.

        The variant's own image, else an image listing the variant, else the
        first product image.
        """
        if variant.image_id is not None:
            for image in self.images:
                if image.id == variant.image_id and image.src:
                    return image.src
        for image in self.images:
            if variant.id in image.variant_ids and image.src:
                return image.src
        for image in self.images:
            if image.src:
                return image.src
        return None
