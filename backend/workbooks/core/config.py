from dataclasses import dataclass
from typing import List, Optional
import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class TableConfig:
    """Table and index names, built once and injected into storage."""
    workbooks_table: str = "WorkBook"
    owner_index: str = "OwnerIndex"
    grants_table: str = "SharedWorkBookRecord"
    grantee_index: str = "GranteeIndex"


class Settings:
    """Application settings loaded from environment variables."""
    
    def __init__(self):
        # CORS
        self.ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")
        
        # DynamoDB
        self.DYNAMODB_ENABLED = os.getenv("WORKBOOKS_TABLE_NAME") is not None
        self.WORKBOOKS_TABLE_NAME = os.getenv("WORKBOOKS_TABLE_NAME", "WorkBook")
        self.WORKBOOKS_OWNER_INDEX = os.getenv("WORKBOOKS_OWNER_INDEX", "OwnerIndex")
        self.ACCESS_GRANTS_TABLE_NAME = os.getenv("ACCESS_GRANTS_TABLE_NAME", "SharedWorkBookRecord")
        self.ACCESS_GRANTS_USER_INDEX = os.getenv("ACCESS_GRANTS_USER_INDEX", "GranteeIndex")
        self.AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
        self.DYNAMODB_ENDPOINT_URL: Optional[str] = os.getenv("DYNAMODB_ENDPOINT_URL") or None
        
        # Sharing
        self.MAINTAIN_ACCESS_GRANTS = _env_bool("MAINTAIN_ACCESS_GRANTS", "true")
        self.SHARE_MAX_ATTEMPTS = int(os.getenv("SHARE_MAX_ATTEMPTS", "4"))
        self.SHARE_RETRY_BASE_DELAY = float(os.getenv("SHARE_RETRY_BASE_DELAY", "0.02"))
        self.SHARE_RETRY_MAX_DELAY = float(os.getenv("SHARE_RETRY_MAX_DELAY", "0.25"))
        
        # Storage
        self.WORKBOOK_STORAGE_DIR = os.getenv("WORKBOOK_STORAGE_DIR", "backend/data/workbooks")
        self.MAX_SOURCE_CODE_BYTES = 1024
        
        # Application
        self.APP_TITLE = "Workbooks"
        self.DEBUG = _env_bool("DEBUG", "false")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    
    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]
    
    @property
    def table_config(self) -> TableConfig:
        return TableConfig(
            workbooks_table=self.WORKBOOKS_TABLE_NAME,
            owner_index=self.WORKBOOKS_OWNER_INDEX,
            grants_table=self.ACCESS_GRANTS_TABLE_NAME,
            grantee_index=self.ACCESS_GRANTS_USER_INDEX,
        )


settings = Settings()
