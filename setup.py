from __future__ import annotations

from setuptools import find_packages, setup

setup(
    # Package metadata
    name="concierge",
    version="1.0.0",
    description="Household email discovery and approval queue",
    # Package discovery
    packages=find_packages(exclude=["tests", "tests.*"]),
    # Dependencies
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn>=0.24.0",
        "pydantic>=2.5.0",
        "google-cloud-aiplatform>=1.38.0",
        "python-dotenv>=1.0.0",
        "PyYAML>=6.0",
        "tenacity>=8.2.0",
        "python-dateutil>=2.8.2",
    ],
    # Optional dependencies (for development)
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.25.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "httpx>=0.25.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
    },
    # CLI commands
    entry_points={
        "console_scripts": [
            "concierge-api=concierge.api.app:main",
        ],
    },
    # Python version requirement
    python_requires=">=3.11",
    # PyPI classifiers
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
    ],
)
