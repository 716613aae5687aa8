from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from db.models import SQLITE_INTEGER_MAX, SQLITE_INTEGER_MIN
from domain.currencies import Presentation, Symbol

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class FieldError:
    field: str
    value: Any

    def __str__(self) -> str:
        return f"[{self.field}]: '{self.value}' value error"


class PayloadValidationError(ValueError):
    def __init__(self, errors: list[FieldError]) -> None:
        super().__init__(" and ".join(str(error) for error in errors))
        self.errors = errors


class RatesQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    base: Literal["", "fiat", "crypto"] = ""

    @property
    def presentation(self) -> Presentation:
        if self.base == "crypto":
            return Presentation.CRYPTO_AS_BASE
        return Presentation.FIAT_AS_BASE


class HistoricalRatesQuery(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_currency: Symbol = Field(alias="baseCurrency")
    target_currency: Symbol = Field(alias="targetCurrency")
    start: int = Field(ge=SQLITE_INTEGER_MIN, le=SQLITE_INTEGER_MAX)
    end: int | None = Field(default=None, ge=SQLITE_INTEGER_MIN, le=SQLITE_INTEGER_MAX)

    @field_validator("end", mode="before")
    @classmethod
    def _lenient_end(cls, value: Any) -> Any:
        # An empty, unparsable or out-of-range end means "up to now".
        if value is None:
            return None
        try:
            parsed = int(str(value).strip())
        except ValueError:
            return None
        if not SQLITE_INTEGER_MIN <= parsed <= SQLITE_INTEGER_MAX:
            return None
        return parsed


class RequestValidator:
    """Checks raw query parameters against the fixed symbol domain.

    Missing parameters are validated as empty strings so that they produce the
    same ``[field]: '' value error`` message as explicitly empty ones.
    """

    def rates_query(self, *, base: str | None) -> RatesQuery:
        return self._validate(RatesQuery, {"base": base or ""})

    def historical_query(
        self,
        *,
        base_currency: str | None,
        target_currency: str | None,
        start: str | None,
        end: str | None = None,
    ) -> HistoricalRatesQuery:
        data = {
            "baseCurrency": base_currency or "",
            "targetCurrency": target_currency or "",
            "start": (start or "").strip(),
            "end": end,
        }
        return self._validate(HistoricalRatesQuery, data)

    @staticmethod
    def _validate(model: type[ModelT], data: dict[str, Any]) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            errors = [
                FieldError(field=str(error["loc"][0]).lower() if error["loc"] else "payload", value=error.get("input"))
                for error in exc.errors()
            ]
            raise PayloadValidationError(errors) from exc


__all__ = [
    "FieldError",
    "HistoricalRatesQuery",
    "PayloadValidationError",
    "RatesQuery",
    "RequestValidator",
]
