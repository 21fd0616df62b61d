"""Runtime settings for the lokoctl application."""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

_PACKAGE_DIR = Path(__file__).resolve().parent


class Config:
    """Application settings with sensible defaults."""

    # Cluster configuration files
    LOKOCFG: str = os.getenv("LOKOCTL_LOKOCFG", "./")
    LOKOCFG_VARS: str = os.getenv("LOKOCTL_LOKOCFG_VARS", "./lokocfg.vars")

    # External binaries
    TERRAFORM_BIN: str = os.getenv("LOKOCTL_TERRAFORM_BIN", "terraform")
    HELM_BIN: str = os.getenv("LOKOCTL_HELM_BIN", "helm")
    HELM_TIMEOUT: str = os.getenv("LOKOCTL_HELM_TIMEOUT", "300s")

    # Timeouts (in seconds)
    VERIFY_TIMEOUT: float = float(os.getenv("LOKOCTL_VERIFY_TIMEOUT", "600"))
    VERIFY_INTERVAL: float = float(os.getenv("LOKOCTL_VERIFY_INTERVAL", "10"))
    DEPLOYMENT_TIMEOUT: float = float(os.getenv("LOKOCTL_DEPLOYMENT_TIMEOUT", "300"))
    DEPLOYMENT_INTERVAL: float = float(os.getenv("LOKOCTL_DEPLOYMENT_INTERVAL", "5"))

    # Terraform modules and Helm charts shipped with the tool
    ASSETS_SOURCE: Path = Path(os.getenv("LOKOCTL_ASSETS_SOURCE", str(_PACKAGE_DIR / "assets")))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
