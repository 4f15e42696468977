from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "formforge"
    LOG_LEVEL: str = "INFO"
    CUSTOM_LOGIC_MAX_STEPS: int = 1000  # step budget for custom derived fields

    class Config:
        env_file = ".env"


settings = Settings()
