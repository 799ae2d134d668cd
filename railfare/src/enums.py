from enum import IntEnum


class CoachKind(IntEnum):
    STANDARD = 1
    AIR_CONDITIONED = 2
    SLEEPER = 3
    SLEEPER_AC = 4

    @property
    def hasAC(self) -> bool:
        return self in (CoachKind.AIR_CONDITIONED, CoachKind.SLEEPER_AC)

    @property
    def isSleeper(self) -> bool:
        return self in (CoachKind.SLEEPER, CoachKind.SLEEPER_AC)


class BerthKind(IntEnum):
    UPPER = 1
    LOWER = 2
    SINGLE = 3


class TariffKind(IntEnum):
    DISTANCE = 1
    AC = 2
    BERTH = 3


class BatchStatus(IntEnum):
    SUCCESS = 1
    COMPLETED_WITH_ERRORS = 2
