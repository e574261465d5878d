import dataclasses
import os
from dataclasses import dataclass, field
from typing import Optional

from intrange.exceptions import InvalidSettings

# number of module sweeps after which symbols that are still changing
# get widened to the full set
DEFAULT_MAX_ITERATIONS = 5


def _env_max_iterations() -> int:
    value = os.environ.get("INTRANGE_MAX_ITERATIONS")
    if value is None:
        return DEFAULT_MAX_ITERATIONS
    try:
        return int(value)
    except ValueError:
        raise InvalidSettings(
            f"INTRANGE_MAX_ITERATIONS must be an int, got {value!r}"
        ) from None


def _env_watch() -> Optional[str]:
    return os.environ.get("INTRANGE_WATCH") or None


@dataclass
class Settings:
    max_iterations: int = field(default_factory=_env_max_iterations)
    watch: Optional[str] = field(default_factory=_env_watch)
    debug: bool = False

    def __post_init__(self):
        # sanity check inputs
        if not isinstance(self.max_iterations, int) or isinstance(self.max_iterations, bool):
            raise InvalidSettings(f"max_iterations must be an int, got {self.max_iterations!r}")
        if self.max_iterations < 1:
            raise InvalidSettings(
                f"max_iterations must be positive, got {self.max_iterations}",
                hint="the sweep cap bounds how long slowly converging symbols may grow",
            )
        if self.watch is not None:
            assert isinstance(self.watch, str)
        assert isinstance(self.debug, bool)

    def as_dict(self):
        ret = dataclasses.asdict(self)
        return {k: v for (k, v) in ret.items() if v is not None}

    @classmethod
    def from_dict(cls, data):
        return cls(**data)
