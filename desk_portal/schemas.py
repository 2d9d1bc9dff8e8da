from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from desk_portal.models import ReviewAction


class PaymentsIn(BaseModel):
    model_config = ConfigDict(extra='forbid')

    gunbasiNakit: Decimal = Decimal('0')
    bankayaGonderilen: Decimal = Decimal('0')
    ertesiGuneBirakilan: Decimal = Decimal('0')


class SubmissionIn(BaseModel):
    date: dt.date
    products: dict[str, Decimal] = Field(default_factory=dict)
    categoryCreditCards: dict[str, Decimal] = Field(default_factory=dict)
    payments: PaymentsIn = Field(default_factory=PaymentsIn)
    banknotes: dict[str, dict[str, int]] | None = None
    bankSentCash: dict[str, Decimal] | None = None


class ReviewIn(BaseModel):
    model_config = ConfigDict(extra='forbid')

    action: ReviewAction
    notes: str | None = Field(default=None, max_length=2000)


class LoginIn(BaseModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=512)
