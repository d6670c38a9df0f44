from enum import Enum


class ActivityCategory(str, Enum):
    MUSEUM = "museum"
    PARK = "park"
    RESTAURANT = "restaurant"
    CAFE = "cafe"
    MONUMENT = "monument"
    ART = "art"
    SHOPPING = "shopping"
    NIGHTLIFE = "nightlife"
    SPA = "spa"
    THEATER = "theater"
    HOTEL = "hotel"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "ActivityCategory":
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OTHER


class ActivityStatus(str, Enum):
    PENDING = "pending"
    UPCOMING = "upcoming"
    ACTIVE = "active"
    DONE = "done"
    DISRUPTED = "disrupted"


class AffinityDimension(str, Enum):
    MUSEUMS = "museums"
    FOOD = "food"
    NATURE = "nature"
    SHOPPING = "shopping"
    NIGHTLIFE = "nightlife"


class TravelStyle(str, Enum):
    RELAXED = "relaxed"
    EXPLORER = "explorer"
    CULTURAL = "cultural"
    LUXURY = "luxury"


class DisruptionType(str, Enum):
    WEATHER = "WEATHER"
    FATIGUE = "FATIGUE"
    TIME = "TIME"
    CROWD = "CROWD"
    BOREDOM = "BOREDOM"


class Urgency(str, Enum):
    IMMEDIATE = "immediate"
    SOON = "soon"
    LOW = "low"


class LogType(str, Enum):
    SYSTEM = "system"
    AI = "ai"
    USER = "user"
    WARNING = "warning"
    REPLAN = "replan"
    ERROR = "error"


class FeedbackSignal(str, Enum):
    HAPPY = "happy"
    TIRED = "tired"
    RUSHED = "rushed"
    BORED = "bored"


class TripPhase(str, Enum):
    LANDING = "landing"
    SETUP = "setup"
    PLANNING = "planning"
    ACTIVE = "active"
    DONE = "done"
