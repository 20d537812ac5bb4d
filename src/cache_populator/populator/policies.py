"""Refresh policies for recurring population."""

from pydantic import BaseModel, Field


class TimeoutPolicy(BaseModel):
    """Fixed-delay refresh: the next run waits on the outcome of the last one."""

    success_delay: float = Field(..., ge=0, description="Seconds to wait after a successful run")
    error_delay: float | None = Field(
        None, ge=0, description="Seconds to wait after a failed run (defaults to success_delay)"
    )

    def delay_for(self, succeeded: bool) -> float:
        """Delay before the next run given the previous outcome."""
        if succeeded or self.error_delay is None:
            return self.success_delay
        return self.error_delay


class TimingPolicy(BaseModel):
    """Cron-driven refresh with an independent retry delay for failed runs."""

    error_delay: float = Field(..., ge=0, description="Seconds before retrying a failed run")
    schedule: str = Field(..., description="Crontab expression, e.g. '*/10 * * * *'")
    exclusive: bool = Field(
        False, description="Serialize cron ticks and retries for the same key"
    )
