from pydantic import BaseModel, ConfigDict, Field


class SkipCreate(BaseModel):
    """A finding pattern to suppress, matched on code, context, selector and url."""
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1)
    url: str = Field(min_length=1)
    selector: str = Field(min_length=1)
    context: str = Field(min_length=1)
    reason: str = Field(min_length=1)
    description: str = Field(min_length=1)
    skip_all_pages: bool = Field(default=False, alias="skipAllPages")
