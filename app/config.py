from pydantic import BaseModel
import os
from dotenv import load_dotenv

load_dotenv()



class Settings(BaseModel):
    SECRET_KEY: str = os.getenv("SECRET_KEY", "secret")
    ALGORITHM: str = "HS256"
    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    # Mongo
    MONGO_URI: str = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    MONGO_DB_NAME: str = os.getenv("MONGO_DB_NAME", "ChilahatiArchive")
    MONGO_TIMEOUT_MS: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
    # Archive behaviour
    SEARCH_PAGE_SIZE: int = 10
    DEFAULT_ITEM_STATUS: str = os.getenv("DEFAULT_ITEM_STATUS", "published")

settings = Settings()
