from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.shared.api.utils import ApiResponse


class CamelModel(BaseModel):
    """Request/response body with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiOk(ApiResponse, CamelModel):
    """Success envelope whose payload fields sit next to `success` instead of under `results`."""

    success: Literal[True] = True
