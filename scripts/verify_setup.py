#!/usr/bin/env python3
"""
Setup Verification Script

Validates configuration and every tenant's flow/calendar files before running
the application. Run this after editing .env or anything under configs/.

Usage:
    python scripts/verify_setup.py
"""

import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Load environment variables
from dotenv import load_dotenv
load_dotenv()


def print_header(title: str) -> None:
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print(f"{'='*60}")


def print_result(name: str, success: bool, message: str = "") -> None:
    """Print check result."""
    status = "[PASS]" if success else "[FAIL]"
    color = "\033[92m" if success else "\033[91m"
    reset = "\033[0m"
    msg = f" - {message}" if message else ""
    print(f"  {color}{status}{reset} {name}{msg}")


def check_env_file() -> bool:
    """Check if .env file exists."""
    env_path = project_root / ".env"
    exists = env_path.exists()
    if not exists:
        print_result(".env file", False, "File not found (environment variables only)")
    else:
        print_result(".env file", True, "Found")
    return exists


def check_required_vars() -> dict[str, bool]:
    """Check required environment variables."""
    results = {}

    required = [
        ("WHATSAPP_TOKEN", "Required to answer messages"),
        ("VERIFY_TOKEN", "Webhook handshake token (default: brokerbot_verify)"),
    ]

    for var, description in required:
        value = os.getenv(var, "")

        if not value:
            ok = var == "VERIFY_TOKEN"
            print_result(var, ok, f"Not set - {description}")
            results[var] = ok
        else:
            # Mask sensitive values
            masked = f"{value[:8]}...{value[-4:]}" if len(value) > 12 else "***"
            print_result(var, True, f"Set ({masked})")
            results[var] = True

    return results


def check_optional_vars() -> None:
    """Check optional environment variables."""
    optional = [
        ("APP_ENV", "development"),
        ("DEBUG", "false"),
        ("PORT", "8080"),
        ("DEFAULT_TENANT", "broker"),
        ("TENANT_BY_PHONE_NUMBER_ID", ""),
        ("CONFIG_ROOT", "configs"),
        ("WHATSAPP_FORCE_TO", ""),
        ("SESSION_TTL_SECONDS", "1800"),
    ]

    for var, default in optional:
        value = os.getenv(var, default)
        print_result(var, True, f"{value or '(empty)'}")


def check_google_credentials() -> bool:
    """Check the service account file used for Google Calendar."""
    path = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "")
    if not path:
        print_result("Google credentials", False, "GOOGLE_APPLICATION_CREDENTIALS not set")
        return False
    if not Path(path).is_file():
        print_result("Google credentials", False, f"File not found: {path}")
        return False
    print_result("Google credentials", True, path)
    return True


def discover_tenants(config_root: Path) -> list[str]:
    """Tenants are the subdirectories of the config root."""
    if not config_root.is_dir():
        return []
    return sorted(p.name for p in config_root.iterdir() if p.is_dir())


def check_tenants() -> bool:
    """Load and validate every tenant's flow.json and calendar.json."""
    from app.config import get_settings
    from app.core.flows import FlowConfigError, load_flow_definition
    from app.core.scheduling import CalendarConfigError, load_calendar_config

    settings = get_settings()
    config_root = Path(settings.config_root)
    if not config_root.is_absolute():
        config_root = project_root / config_root

    tenants = discover_tenants(config_root)
    if not tenants:
        print_result("Tenants", False, f"No tenant directories under {config_root}")
        return False

    all_ok = True
    for tenant in tenants:
        try:
            flow = load_flow_definition(tenant, config_root)
            print_result(f"{tenant}/flow.json", True, f"{len(flow.states)} states (version {flow.version or '-'})")
        except FlowConfigError as e:
            print_result(f"{tenant}/flow.json", False, str(e))
            all_ok = False

        try:
            calendar = load_calendar_config(tenant, config_root, settings.google_calendar_id)
            print_result(
                f"{tenant}/calendar.json",
                True,
                f"{calendar.start_hour}-{calendar.end_hour}h days={list(calendar.work_days)}",
            )
        except CalendarConfigError as e:
            # Tenants without scheduling states do not need a calendar
            print_result(f"{tenant}/calendar.json", False, f"{e} (only needed for scheduling)")

    if settings.default_tenant not in tenants:
        print_result("DEFAULT_TENANT", False, f"{settings.default_tenant} has no config directory")
        all_ok = False

    return all_ok


def check_dependencies() -> bool:
    """Check if required Python packages are installed."""
    required_packages = [
        "fastapi",
        "uvicorn",
        "pydantic",
        "pydantic_settings",
        "httpx",
        "googleapiclient",
        "google.oauth2",
    ]

    missing = []
    for package in required_packages:
        try:
            __import__(package.replace("-", "_"))
        except ImportError:
            missing.append(package)

    if missing:
        print_result("Python packages", False, f"Missing: {', '.join(missing)}")
        return False
    else:
        print_result("Python packages", True, "All required packages installed")
        return True


def main() -> int:
    """Run all verification checks."""
    print("\n" + "="*60)
    print(" Flowly Orchestrator - Setup Verification")
    print("="*60)

    critical_failed = False

    # Check .env file
    print_header("Environment File")
    check_env_file()  # Non-critical

    # Check dependencies
    print_header("Python Dependencies")
    if not check_dependencies():
        critical_failed = True

    # Check required variables
    print_header("Required Environment Variables")
    var_results = check_required_vars()
    if not all(var_results.values()):
        critical_failed = True

    # Check optional variables
    print_header("Optional Environment Variables")
    check_optional_vars()

    print_header("Google Calendar")
    check_google_credentials()  # Only needed for scheduling flows

    # Tenant configs
    print_header("Tenant Configuration")
    if not check_tenants():
        critical_failed = True

    # Summary
    print_header("Summary")

    if critical_failed:
        print("\n  \033[91mCRITICAL: Some checks failed.\033[0m")
        print("  Please fix the issues above before running the application.")
        print()
        return 1
    else:
        print("\n  \033[92mAll checks passed!\033[0m")
        print("  You can start the application with:")
        print("    uvicorn app.main:app --reload --port 8080")
        print()
        return 0


if __name__ == "__main__":
    sys.exit(main())
