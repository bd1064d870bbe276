# app/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List
from dotenv import load_dotenv
load_dotenv()

class Settings(BaseSettings):
    # Application Settings
    allowed_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    # Civil time used for scheduling and labels
    timezone: str = "America/Chicago"
    late_hour: int = 20

    # Google Maps Platform (Places text search, Distance Matrix)
    google_maps_api_key: str = ""
    places_timeout_seconds: float = 12.0
    travel_timeout_seconds: float = 10.0
    travel_tips_enabled: bool = True

    # Gemini (API key) or Vertex AI (project) for narrative text
    google_api_key: str = ""
    google_cloud_project: str = ""
    vertex_ai_location: str = "us-central1"
    narrative_model: str = "gemini-2.0-flash-lite"
    llm_timeout_seconds: float = 12.0

    # Pydantic V2 configuration (Python 3.13 compatible)
    model_config = ConfigDict(
        env_file=".env",
        extra="ignore"  # Allow extra environment variables without validation errors
    )

class CloudRunConfig:
    """Configuration for Cloud Run deployment"""

    # Environment Detection
    IS_CLOUD_RUN: bool = os.getenv("K_SERVICE") is not None

    PROJECT_ID: str = os.getenv("GOOGLE_CLOUD_PROJECT", "")
    PORT: int = int(os.getenv("PORT", "8080"))

settings = Settings()
cloud_config = CloudRunConfig()
