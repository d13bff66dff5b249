"""Setup script for Crash Dashboard"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README
this_directory = Path(__file__).parent
long_description = ""
readme_path = this_directory / "README.md"
if readme_path.exists():
    long_description = readme_path.read_text(encoding="utf-8")

setup(
    name="crash-dashboard",
    version="0.1.0",
    description="Live per-signature crash report dashboard with sample-based estimates",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    package_data={"crash_dashboard.server": ["templates/*.html"]},
    include_package_data=True,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Bug Tracking",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20.0",
        "httpx>=0.24.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "starlette>=0.27.0",
        "uvicorn>=0.22.0",
        "tomli>=2.0.0; python_version<'3.11'",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            # starlette.testclient runs on httpx
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "crash-dashboard=crash_dashboard.cli:app",
        ],
    },
    keywords="crash-reports socorro supersearch dashboard sampling",
)
