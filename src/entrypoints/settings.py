from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.application.pricing import PricingConfig
from src.infrastructure.shiprocket_client import CarrierConfig


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    FREE_SHIPPING_THRESHOLD: int = 2000
    FLAT_SHIPPING_FEE: int = 150
    COD_FEE: int = 25
    ONLINE_FEE_RATE: Decimal = Decimal("0.02")
    ONLINE_FEE_TAX_RATE: Decimal = Decimal("0.18")
    PRODUCT_GST_RATE: Decimal = Decimal("0.18")

    SHIPROCKET_BASE_URL: str = "https://apiv2.shiprocket.in/v1/external"
    SHIPROCKET_EMAIL: str
    SHIPROCKET_PASSWORD: str
    SHIPROCKET_CHANNEL_ID: str | None = None
    SHIPROCKET_PICKUP_NICKNAME: str = "Sales Office"
    SHIPROCKET_PICKUP_PINCODE: str = ""
    SHIPROCKET_TIMEOUT_SECONDS: float = 30.0

    AUTO_CREATE_SHIPMENT: bool = True

    def pricing(self) -> PricingConfig:
        return PricingConfig(
            free_shipping_threshold=self.FREE_SHIPPING_THRESHOLD,
            flat_shipping_fee=self.FLAT_SHIPPING_FEE,
            cod_fee=self.COD_FEE,
            online_fee_rate=self.ONLINE_FEE_RATE,
            online_fee_tax_rate=self.ONLINE_FEE_TAX_RATE,
            gst_rate=self.PRODUCT_GST_RATE,
        )

    def carrier(self) -> CarrierConfig:
        return CarrierConfig(
            base_url=self.SHIPROCKET_BASE_URL,
            email=self.SHIPROCKET_EMAIL,
            password=self.SHIPROCKET_PASSWORD,
            channel_id=self.SHIPROCKET_CHANNEL_ID or None,
            pickup_location=self.SHIPROCKET_PICKUP_NICKNAME.strip(),
            pickup_postcode=self.SHIPROCKET_PICKUP_PINCODE.strip(),
            timeout_seconds=self.SHIPROCKET_TIMEOUT_SECONDS,
        )
