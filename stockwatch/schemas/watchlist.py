from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from stockwatch.schemas.quote import Quote


class WatchlistEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    symbol: str
    quote: Quote | None = None
    last_error: str | None = None
    updated_at: int | None = None


class FetchError(BaseModel):
    symbol: str
    kind: str


class FetchReport(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entries: list[WatchlistEntry] = Field(default_factory=list)
    errors: list[FetchError] = Field(default_factory=list)
    aggregate_error: str | None = None

    @property
    def total_failure(self) -> bool:
        return self.aggregate_error is not None


class AddSymbolRequest(BaseModel):
    symbol: str
