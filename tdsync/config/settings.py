"""
Application settings and configuration
"""

import os
from pathlib import Path
from dotenv import load_dotenv
from typing import Optional

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Application settings loaded from environment variables"""
    
    # Todoist
    TODOIST_API_TOKEN: str = os.getenv("TODOIST_API_TOKEN", "")
    TODOIST_API_URL: str = os.getenv("TODOIST_API_URL", "https://api.todoist.com/api/v1")
    DEFAULT_PROJECT_NAME: str = os.getenv("DEFAULT_PROJECT_NAME", "Inbox")
    SYNC_CLIENT_NAME: str = os.getenv("SYNC_CLIENT_NAME", "tdsync")
    
    # Vault
    VAULT_PATH: str = os.getenv("VAULT_PATH", "")
    VAULT_NAME: str = os.getenv("VAULT_NAME", "")
    CACHE_FILE_PATH: str = os.getenv("CACHE_FILE_PATH", "./tdsync_cache.json")
    
    # Sync behaviour
    SYNC_TAG: str = os.getenv("SYNC_TAG", "#tdsync")
    AUTOMATIC_SYNC_INTERVAL: int = int(os.getenv("AUTOMATIC_SYNC_INTERVAL", "150"))
    TEXT_CHANGE_DELAY: float = float(os.getenv("TEXT_CHANGE_DELAY", "10"))
    WATCH_INTERVAL: float = float(os.getenv("WATCH_INTERVAL", "5"))
    DELAYED_SYNC: bool = _env_flag("DELAYED_SYNC")
    DELAYED_SYNC_SECONDS: float = float(os.getenv("DELAYED_SYNC_SECONDS", "60"))
    ENABLE_FULL_VAULT_SYNC: bool = _env_flag("ENABLE_FULL_VAULT_SYNC")
    COMMENTS_SYNC: bool = _env_flag("COMMENTS_SYNC", "true")
    
    # Text syntax
    ALTERNATIVE_KEYWORDS: bool = _env_flag("ALTERNATIVE_KEYWORDS", "true")
    CHANGE_DATE_ORDER: bool = _env_flag("CHANGE_DATE_ORDER")
    LINKS_APP_URI: bool = _env_flag("LINKS_APP_URI")
    NON_EXISTING_TASK_FLAG: str = os.getenv("NON_EXISTING_TASK_FLAG", "Task not found in todoist")
    AUTOFIX_NON_EXISTING_TASK: bool = _env_flag("AUTOFIX_NON_EXISTING_TASK")
    STALE_TASK_ID_PATTERN: str = os.getenv("STALE_TASK_ID_PATTERN", r"^\d+$")
    
    # Timezone (hours from UTC); local system timezone when unset
    USER_TIMEZONE_OFFSET: Optional[str] = os.getenv("USER_TIMEZONE_OFFSET", None)
    
    # Application
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: str = os.getenv("LOG_DIR", str(Path(__file__).parent.parent.parent / "logs"))
    
    @property
    def vault_name(self) -> str:
        """Vault name used in backlinks, defaults to the vault directory name"""
        if self.VAULT_NAME:
            return self.VAULT_NAME
        return Path(self.VAULT_PATH).name if self.VAULT_PATH else ""
    
    def validate(self) -> bool:
        """Validate that all required settings are present"""
        required = {
            "TODOIST_API_TOKEN": self.TODOIST_API_TOKEN,
            "VAULT_PATH": self.VAULT_PATH,
        }
        
        missing = [name for name, value in required.items() if not value]
        
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        
        return True


# Global settings instance
settings = Settings()
