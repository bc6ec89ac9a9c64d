from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict  # per Pydantic v2


# BASE_DIR = root del servizio stockdash (dove c'è app/)
BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    # Config Pydantic Settings v2
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignora eventuali env "in più"
    )

    SERVICE_NAME: str = "StockDash Feed"
    APP_VERSION: str = "0.1.0"

    # Ambiente logico del servizio: dev / demo / prod
    ENVIRONMENT: str = "dev"
    LOG_LEVEL: str = "INFO"

    # -----------------------------
    # Price ticker (random walk)
    # -----------------------------
    # Se False il timer non parte allo startup (utile nei test delle API)
    PRICE_TICKER_ENABLED: bool = True

    # Ogni quanti secondi viene eseguito un tick
    PRICE_UPDATE_INTERVAL_SEC: float = Field(5.0, gt=0)

    # Banda simmetrica della variazione per tick, in percentuale (1.0 = ±1%).
    # Tetto a 10: con l'arrotondamento ai centesimi il prezzo non arriva mai a 0.
    PRICE_TICK_BAND_PCT: float = Field(1.0, gt=0, le=10)

    # Di quanto high/low della barra si scostano dal close (percentuale)
    BAR_SPREAD_PCT: float = Field(1.0, ge=0, le=10)

    # Volume casuale della barra, estremi inclusi
    BAR_VOLUME_MIN: int = Field(5_000_000, ge=0)
    BAR_VOLUME_MAX: int = Field(14_999_999, ge=0)

    # Numero massimo di barre tenute per simbolo
    HISTORY_WINDOW: int = Field(30, ge=1)

    # Seed opzionale per avere un random walk riproducibile
    PRICE_RANDOM_SEED: Optional[int] = None

    # -----------------------------
    # WebSocket listeners
    # -----------------------------
    # Dimensione della coda di uscita per singolo listener
    LISTENER_QUEUE_SIZE: int = Field(100, ge=1)

    @model_validator(mode="after")
    def _check_volume_range(self) -> "Settings":
        if self.BAR_VOLUME_MAX < self.BAR_VOLUME_MIN:
            raise ValueError("BAR_VOLUME_MAX must be >= BAR_VOLUME_MIN")
        return self

    # Alias "comodi" in lower-case, usati da /health e dallo scheduler
    @property
    def environment(self) -> str:
        return self.ENVIRONMENT

    @property
    def service_name(self) -> str:
        return self.SERVICE_NAME

    @property
    def price_update_interval_sec(self) -> float:
        """Alias per l'intervallo del ticker (secondi)."""
        return self.PRICE_UPDATE_INTERVAL_SEC

    @property
    def tick_band(self) -> float:
        """Banda del tick come frazione (1.0% -> 0.01)."""
        return self.PRICE_TICK_BAND_PCT / 100.0

    @property
    def bar_spread(self) -> float:
        """Spread di high/low come frazione (1.0% -> 0.01)."""
        return self.BAR_SPREAD_PCT / 100.0


settings = Settings()
