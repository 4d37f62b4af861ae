import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Pipeline configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///fairway.db')
    DB_MAX_RETRIES = int(os.getenv('DB_MAX_RETRIES', 5))
    
    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Redis settings (optional delivery dedupe cache)
    REDIS_URL = os.getenv('REDIS_URL', '')
    DELIVERY_GUARD_ENABLED = os.getenv('DELIVERY_GUARD_ENABLED', 'False').lower() == 'true'
    DELIVERY_GUARD_TTL = int(os.getenv('DELIVERY_GUARD_TTL', 7 * 24 * 3600))
    
    # Rivalry settings
    RIVALRY_THRESHOLD = int(os.getenv('RIVALRY_THRESHOLD', 3))   # Shared rounds before a rivalry forms
    MAX_RIVALRY_PAIRS = int(os.getenv('MAX_RIVALRY_PAIRS', 200))  # 20-player outing = 190 pairs
    
    # Feed settings
    MAX_RIVALRY_CARDS_PER_EVENT = int(os.getenv('MAX_RIVALRY_CARDS_PER_EVENT', 3))
    
    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Convert a sync sqlite URL to its aiosqlite form"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return url
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are usable"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.RIVALRY_THRESHOLD < 1:
            raise ValueError("RIVALRY_THRESHOLD must be at least 1")
        if cls.MAX_RIVALRY_PAIRS < 1:
            raise ValueError("MAX_RIVALRY_PAIRS must be at least 1")
        if cls.MAX_RIVALRY_CARDS_PER_EVENT < 0:
            raise ValueError("MAX_RIVALRY_CARDS_PER_EVENT cannot be negative")
        if cls.DELIVERY_GUARD_ENABLED and not cls.REDIS_URL:
            raise ValueError("REDIS_URL is required when DELIVERY_GUARD_ENABLED is set")
