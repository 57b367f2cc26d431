from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROMPT_TEMPLATE = (
    "A simple, artistic, high-quality, professional product photograph representing the concept of "
    "'{name}'. The background should be a clean, solid light gray (#f3f4f6). No text or logos."
)


def default_prompt(name: str) -> str:
    """Return the generation prompt used for a category before any user edits."""
    return DEFAULT_PROMPT_TEMPLATE.format(name=name)


class ItemStatus(str, Enum):
    pending = "pending"
    in_flight = "in_flight"
    succeeded = "succeeded"
    failed = "failed"


class ItemError(str, Enum):
    quota_exceeded = "Quota Exceeded"
    invalid_api_key = "Invalid API Key"
    upload_failed = "CDN Upload Failed"
    generation_failed = "Image Generation Failed"
    not_configured = "Storage Not Configured"


class InputCategory(BaseModel):
    id: int
    name: str
    url: Optional[str] = None


class OutputCategory(BaseModel):
    id: int
    name: str
    url: str


class ItemRecord(BaseModel):
    """Processing state of a single category. Instances are replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    prompt: str
    url: str = ""
    status: ItemStatus = ItemStatus.pending
    error: Optional[ItemError] = None

    @classmethod
    def from_category(cls, category: InputCategory) -> "ItemRecord":
        existing_url = (category.url or "").strip()
        return cls(
            id=category.id,
            name=category.name,
            prompt=default_prompt(category.name),
            url=existing_url,
            status=ItemStatus.succeeded if existing_url else ItemStatus.pending,
        )


class CredentialSet(BaseModel):
    """Destination blob storage credentials, serialized as `{storageUrl, container, token}`."""

    model_config = ConfigDict(populate_by_name=True)

    storage_url: str = Field("", alias="storageUrl")
    container: str = ""
    token: str = ""

    @property
    def is_configured(self) -> bool:
        return all(value.strip() for value in (self.storage_url, self.container, self.token))


class CredentialSetRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    storage_url: str = Field("", alias="storageUrl")
    container: str = ""
    token_set: bool = Field(False, alias="tokenSet")
    configured: bool = False


class PromptUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(..., min_length=1, description="New generation prompt for the item.")


class AuthorizationRead(BaseModel):
    authorization_selected: bool


class QueueSnapshot(BaseModel):
    running: bool
    paused: bool
    item_in_flight: bool
    authorization_selected: bool
    delay_seconds: float
    total: int
    pending: int
    in_flight: int
    succeeded: int
    failed: int
    has_failures: bool
    is_complete: bool
    progress: Optional[str] = None
