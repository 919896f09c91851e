from .models import (
    AppConfig,
    CertificateConfig,
    DatabaseConfig,
    FeeConfig,
    LoggingConfig,
    ProcessingConfig,
    WorkflowConfig,
)

__all__ = [
    "AppConfig",
    "CertificateConfig",
    "DatabaseConfig",
    "FeeConfig",
    "LoggingConfig",
    "ProcessingConfig",
    "WorkflowConfig",
]
