from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AnalyzeRequest(BaseModel):
    """Parameters of one analysis, read from the query string or a JSON body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = Field(..., min_length=4)
    guid: Optional[str] = Field(default=None, pattern=r"^[A-Za-z0-9_-]{1,128}$")
    page_per_visit: Optional[float] = Field(default=None, validation_alias=AliasChoices("pagePerVisit", "page_per_visit"))
    ads_per_page: Optional[float] = Field(default=None, validation_alias=AliasChoices("adsPerPage", "ads_per_page"))
    # "visitorQuanity" is what older clients send
    visitor_quantity: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("visitorQuantity", "visitorQuanity", "visitor_quantity"),
    )
    passes: Optional[int] = Field(default=None, ge=1, le=10)

    @field_validator("url")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        u = v.strip()
        return u if u.startswith("http") else f"https://{u}"


class ErrorResponse(BaseModel):
    error: str
    type: Optional[str] = None
    guid: Optional[str] = None
