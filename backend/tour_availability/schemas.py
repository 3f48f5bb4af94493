from datetime import date

from pydantic import BaseModel, Field, model_validator

from .domain.entities import PartySize


class PartySizeQuery(BaseModel):
    adults: int = Field(default=1, ge=0)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _requires_a_seat(self) -> "PartySizeQuery":
        if self.adults + self.children < 1:
            raise ValueError("party must include at least one adult or child")
        return self

    def to_domain(self) -> PartySize:
        return PartySize(adults=self.adults, children=self.children, infants=self.infants)


class BookableSlotsRead(BaseModel):
    date: date
    time_slots: list[str]


class DateDisabledRead(BaseModel):
    date: date
    disabled: bool


class NextAvailableDateRead(BaseModel):
    date: date


class PreloadRead(BaseModel):
    start: date
    end: date
    fetched_dates: int
