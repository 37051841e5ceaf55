"""
Task Schemas

Request models for the task API endpoints. Field names on the wire are
camelCase; Python code uses the snake_case attribute names.
"""
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from a11y_service.platform.utils.url_validator import validate_url


STANDARDS = ("Section508", "WCAG2A", "WCAG2AA", "WCAG2AAA")

HeadersInput = Union[str, Dict[str, str], None]


class TaskBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    timeout: Optional[int] = Field(default=None, ge=0)
    wait: Optional[int] = Field(default=None, ge=0)
    ignore: Optional[List[str]] = None
    actions: Optional[List[str]] = None
    username: Optional[str] = None
    password: Optional[str] = None
    hide_elements: Optional[str] = Field(default=None, alias="hideElements")
    headers: HeadersInput = None
    scan_sitemap: Optional[bool] = Field(default=None, alias="scanSitemap")


class TaskCreate(TaskBase):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "name": "Example homepage",
                "url": "https://example.com",
                "standard": "WCAG2AA",
                "scanSitemap": False,
            }
        },
    )

    url: Union[str, List[str]]
    standard: str = "WCAG2AA"
    email: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("url")
    @classmethod
    def check_url(cls, value):
        urls = value if isinstance(value, list) else [value]
        if not urls:
            raise ValueError("At least one URL is required")
        normalized = []
        for url in urls:
            is_valid, url_str, error_message = validate_url(url)
            if not is_valid:
                raise ValueError(error_message)
            normalized.append(url_str)
        return normalized if isinstance(value, list) else normalized[0]

    @field_validator("standard")
    @classmethod
    def check_standard(cls, value):
        if value not in STANDARDS:
            raise ValueError(f"standard must be one of {', '.join(STANDARDS)}")
        return value


class TaskUpdate(TaskBase):
    comment: Optional[str] = None
