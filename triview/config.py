from pydantic_settings import BaseSettings
from pathlib import Path

# Get the repository root directory (parent of triview directory)
REPO_ROOT = Path(__file__).parent.parent.absolute()

class Settings(BaseSettings):
    """Application settings."""
    
    # API settings
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_RELOAD: bool = True
    
    # Version and environment
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    
    # Query settings
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 1000
    
    # Retry settings (network and server failures only)
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_MS: int = 200
    RETRY_BACKOFF_FACTOR: float = 2.0
    RETRY_MAX_DELAY_MS: int = 5000
    
    # Projection settings
    UNASSIGNED_ROOT_ID: str = "__unassigned__"
    UNASSIGNED_ROOT_LABEL: str = "Unassigned"
    TREE_ORDERING: str = "insertion"  # insertion, name, short_name, status, created, updated
    TREE_ORDERING_DIRECTION: str = "asc"
    
    # Demo backend seed data (list of element records in JSON)
    SEED_DATA_PATH: str = str(REPO_ROOT / "storage" / "seed" / "elements.json")
    
    class Config:
        env_file = ".env"

settings = Settings()
