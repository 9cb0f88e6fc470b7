from pathlib import Path

from pydantic_settings import BaseSettings

# .env lookup: backend/.env, then the project root .env
_backend_dir = Path(__file__).resolve().parent.parent
_env_candidates = [_backend_dir / ".env", _backend_dir.parent / ".env"]
_env_file = next((p for p in _env_candidates if p.exists()), ".env")


class Settings(BaseSettings):
    model_config = {"env_file": str(_env_file), "env_file_encoding": "utf-8", "extra": "ignore"}

    # Application
    app_env: str = "development"
    debug: bool = True

    # Geocoding (Base Adresse Nationale)
    geocoder_url: str = "https://api-adresse.data.gouv.fr/search/"

    # Transaction data source: "cerema_api" | "dvf_files" | "database"
    transaction_source: str = "cerema_api"
    cerema_api_url: str = "https://apidf-preprod.cerema.fr/api/v1/transactions/recherche"

    # Bulk geo-dvf files
    dvf_data_dir: str = "./data/geo-dvf"
    dvf_download_url: str = "https://files.data.gouv.fr/geo-dvf/latest/csv"
    dvf_download_missing: bool = False

    # Persisted store
    database_url: str = "sqlite+aiosqlite:///./dvf.db"

    # Retrieval
    retrieval_timeout_s: float = 10.0
    cache_ttl_s: int = 86_400

    # Server
    host: str = "0.0.0.0"
    port: int = 8000


settings = Settings()
