"""
API configuration loaded from environment variables.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from api.schemas import SectionSource


DEFAULT_SECTIONS: List[SectionSource] = [
    SectionSource(
        id="stats",
        path="/dashboard/admin/summary",
        kind="stats",
        policy="summary",
        fields=["totalStudents", "totalTeachers", "totalClasses", "totalSubjects"],
    ),
    SectionSource(id="charts", path="/dashboard/admin/activities", kind="chartList", policy="activities"),
    SectionSource(id="activities", path="/dashboard/admin/activities", kind="activityList", policy="activities"),
    SectionSource(
        id="financial",
        path="/dashboard/finance/global",
        kind="stats",
        policy="financial",
        fields=[
            "totalGlobalRevenue",
            "totalGlobalPendingPayments",
            "totalGlobalOverduePayments",
            "totalGlobalTransactions",
            "averageGlobalTransactionValue",
            "globalRevenueGrowthPercentage",
            "globalPaymentCollectionRate",
        ],
    ),
    SectionSource(id="tenants", path="/dashboard/finance/global", kind="tableRows", policy="financial", source="revenueByTenant"),
]


class Settings(BaseSettings):
    """Runtime configuration for the dashboard API."""

    project_name: str = Field(default="Dashboard Aggregation API", description="Human readable name.")
    upstream_base_url: str = Field(default="http://localhost:5000/api", description="Base URL of the upstream services.")
    upstream_token: Optional[str] = Field(default=None, description="Bearer token forwarded to upstream services.")
    request_timeout: float = Field(default=30.0, description="Upstream request timeout in seconds.")
    allow_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            # Streamlit page
            "http://localhost:8501",
            "http://127.0.0.1:8501",
        ],
        description="List of origins allowed for CORS.",
    )
    log_level: str = Field(default="INFO", description="Root logging level.")
    default_max_retries: Optional[int] = Field(default=None, description="Overrides max_retries of every section policy.")
    default_backoff: Optional[str] = Field(default=None, description="Overrides the backoff curve (constant, linear, exponential).")
    sections: List[SectionSource] = Field(default_factory=lambda: list(DEFAULT_SECTIONS), description="Sections served by the API.")

    model_config = SettingsConfigDict(
        env_prefix="DASHBOARD_",
        extra="ignore",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
