from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DICE_ENGINE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "WARNING"

    # Seed for the default RNG. Leave unset to roll with secrets.SystemRandom.
    random_seed: int | None = None

    # Modulo ranges are computed by enumerating every operand pair; warn above this many.
    modulo_warn_pairs: int = 100_000


settings = Settings()
