from __future__ import annotations

from pydantic import ConfigDict, Field

from stockdesk.app.schemas.common import InputModel


class SecretaryCreate(InputModel):
    # passwords are taken verbatim
    model_config = ConfigDict(str_strip_whitespace=False)

    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)
    is_active: bool = True
