from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_base_url: str = "http://localhost:5000"
    installation_id: str = ""
    gateway_serial: str = ""
    device_id: str = "0"
    request_timeout: float = 30.0
    snapshot_limit: int = 50000
    default_unit_price: float = 0.30  # EUR per kWh when the device has no price set
    timezone: str = "Europe/Berlin"
    database_path: str = "vieventlog.db"
    field_storage_key: str = "vieventlog_graphic_fields"
    default_time_range: str = "24h"
    temperature_refresh_seconds: int = 600  # 0 disables the silent chart refresh
    default_period: str = "today"
    streamlit_port: int = 8501
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
