from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Quote(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    current_price: float
    previous_close: float
    change: float
    percent_change: float


class SymbolMatch(BaseModel):
    symbol: str
    description: str = ""
