#!/usr/bin/env python3
"""Verify that srchd's runtime requirements are in place."""

import shutil
import subprocess
import sys
from pathlib import Path

from srchd.config import Settings


REQUIRED_PYTHON_PACKAGES = [
    ("aiosqlite", "aiosqlite"),
    ("mcp", "mcp"),
]


class Colors:
    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    RESET = "\033[0m"
    BOLD = "\033[1m"


def check_python_version():
    version = sys.version_info
    if version.major >= 3 and version.minor >= 10:
        print(f"{Colors.GREEN}✓ Python {version.major}.{version.minor}.{version.micro}{Colors.RESET}")
        return True
    print(f"{Colors.RED}✗ Python 3.10+ required, found {version.major}.{version.minor}{Colors.RESET}")
    return False


def check_command(cmd, description):
    path = shutil.which(cmd)
    if path:
        print(f"{Colors.GREEN}✓ {description}: {path}{Colors.RESET}")
        return True
    print(f"{Colors.RED}✗ {description} ({cmd}) not found{Colors.RESET}")
    return False


def check_python_packages():
    missing = []
    for import_name, pip_name in REQUIRED_PYTHON_PACKAGES:
        try:
            __import__(import_name)
        except ImportError:
            missing.append(pip_name)

    if missing:
        print(f"{Colors.RED}✗ Missing Python packages: {', '.join(missing)}{Colors.RESET}")
        print(f"  Install with: pip install {' '.join(missing)}")
        return False

    print(f"{Colors.GREEN}✓ All {len(REQUIRED_PYTHON_PACKAGES)} Python packages installed{Colors.RESET}")
    return True


def check_docker(image):
    if not check_command("docker", "Docker CLI"):
        return False

    try:
        info = subprocess.run(["docker", "info"], capture_output=True, text=True, timeout=30)
    except subprocess.TimeoutExpired:
        print(f"{Colors.RED}✗ docker info timed out{Colors.RESET}")
        return False
    if info.returncode != 0:
        print(f"{Colors.RED}✗ Docker daemon not reachable{Colors.RESET}")
        return False
    print(f"{Colors.GREEN}✓ Docker daemon reachable{Colors.RESET}")

    inspect = subprocess.run(["docker", "image", "inspect", image], capture_output=True, text=True, timeout=30)
    if inspect.returncode != 0:
        print(f"{Colors.YELLOW}⚠ Image {image} not pulled yet (docker pull {image}){Colors.RESET}")
    else:
        print(f"{Colors.GREEN}✓ Sandbox image {image} available{Colors.RESET}")
    return True


def check_write_permissions(settings):
    for test_dir in (Path(settings.db_path).parent, Path(settings.workspace_root)):
        try:
            test_dir.mkdir(parents=True, exist_ok=True)
            test_file = test_dir / ".write_test"
            test_file.write_text("test")
            test_file.unlink()
            print(f"{Colors.GREEN}✓ Write access to: {test_dir}{Colors.RESET}")
        except OSError:
            print(f"{Colors.RED}✗ No write access to {test_dir}{Colors.RESET}")
            return False
    return True


def main():
    print("=" * 50)
    print(f"{Colors.BOLD}  srchd Setup Verification{Colors.RESET}")
    print("=" * 50)
    print()

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"{Colors.RED}✗ Invalid configuration: {e}{Colors.RESET}")
        return 1

    errors = 0
    warnings = 0

    print(f"{Colors.BOLD}System:{Colors.RESET}")
    if not check_python_version():
        errors += 1
    if not check_command(settings.python, "Script interpreter"):
        if settings.backend == "local":
            errors += 1
        else:
            warnings += 1

    print()
    print(f"{Colors.BOLD}Python Packages:{Colors.RESET}")
    if not check_python_packages():
        errors += 1

    print()
    print(f"{Colors.BOLD}Execution Backend ({settings.backend}):{Colors.RESET}")
    if settings.backend == "docker":
        if not check_docker(settings.docker_image):
            errors += 1
    elif shutil.which("docker") is None:
        print(f"{Colors.YELLOW}⚠ Docker not installed; only the local backend is usable{Colors.RESET}")
        warnings += 1
    else:
        print(f"{Colors.GREEN}✓ Local backend, scripts run under {settings.workspace_root}{Colors.RESET}")

    print()
    print(f"{Colors.BOLD}Storage:{Colors.RESET}")
    if not check_write_permissions(settings):
        errors += 1

    print()
    print("=" * 50)

    if errors == 0 and warnings == 0:
        print(f"{Colors.GREEN}{Colors.BOLD}✓ All requirements verified!{Colors.RESET}")
        return 0
    elif errors == 0:
        print(f"{Colors.YELLOW}{Colors.BOLD}⚠ Setup complete with {warnings} warning(s){Colors.RESET}")
        return 0
    else:
        print(f"{Colors.RED}{Colors.BOLD}✗ {errors} critical error(s) found{Colors.RESET}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
