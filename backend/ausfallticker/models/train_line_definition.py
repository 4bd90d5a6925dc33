from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TrainLineDefinition(BaseModel):
    """Persisted mapping of one canonical line to the train numbers it runs."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    line: str = Field(..., min_length=1)
    train_numbers: list[str] = Field(default_factory=list, alias="trainNumbers")
    # lines allowed to share train numbers with this one (through-running services)
    connected_lines: Optional[list[str]] = Field(None, alias="connectedLines")

    @field_validator("line")
    @classmethod
    def _strip_line(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("line must not be blank")
        return v

    @field_validator("train_numbers", mode="before")
    @classmethod
    def _unique_numbers(cls, v):
        if not isinstance(v, (list, tuple)):
            raise ValueError("trainNumbers must be a list")
        seen: dict[str, None] = {}
        for n in v:
            n = str(n).strip()
            if n:
                seen.setdefault(n, None)
        return list(seen)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
