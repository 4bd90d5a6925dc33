from pydantic import BaseModel, ConfigDict, Field

TIME_PATTERN = r"^\d{1,2}:\d{2}$"


class Cancellation(BaseModel):
    """One cancelled trip as published in a KVV announcement.

    Serialized with the camelCase keys used in the stored JSON files.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    line: str = Field(..., min_length=1, description="Canonical line id, e.g. S5")
    date: str = Field(..., pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    stand: str = Field(..., min_length=1, description="ISO timestamp of the source status")

    train_number: str = Field(..., alias="trainNumber", pattern=r"^\d+$")
    from_stop: str = Field(..., alias="fromStop", min_length=1)
    from_time: str = Field(..., alias="fromTime", pattern=TIME_PATTERN)
    to_stop: str = Field(..., alias="toStop", min_length=1)
    to_time: str = Field(..., alias="toTime", pattern=TIME_PATTERN)

    source_url: str = Field("", alias="sourceUrl")
    captured_at: str = Field("", alias="capturedAt")

    @property
    def identity_key(self) -> tuple[str, str, str]:
        # same cancellation event even when stops/stand differ
        return (self.date, self.train_number, self.from_time)

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.date, self.from_time, self.train_number)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)
