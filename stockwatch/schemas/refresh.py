from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RefreshCycle(BaseModel):
    """Countdown to the next refresh. Cosmetic, never drives a fetch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    interval_sec: float = 60.0
    elapsed_sec: float = 0.0
    progress_percent: float = 0.0

    @property
    def seconds_left(self) -> float:
        return max(self.interval_sec - self.elapsed_sec, 0.0)

    def reset(self) -> None:
        self.elapsed_sec = 0.0
        self.progress_percent = 0.0

    def advance(self, step_sec: float) -> None:
        self.elapsed_sec = min(self.elapsed_sec + step_sec, self.interval_sec)
        if self.interval_sec <= 0:
            self.progress_percent = 100.0
            return
        self.progress_percent = min(self.elapsed_sec / self.interval_sec * 100.0, 100.0)

    def snapshot(self) -> dict:
        data = self.model_dump(by_alias=True)
        data["secondsLeft"] = self.seconds_left
        return data

