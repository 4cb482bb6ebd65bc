"""
Aizu Python SDK - Setup

Client-side analytics event pipeline for the Aizu platform.
"""

import os
import re

from setuptools import setup, find_packages

# Read the README
here = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

# Read version
with open(os.path.join(here, "aizu", "__init__.py"), encoding="utf-8") as f:
    version = re.search(r'^__version__ = "([^"]+)"', f.read(), re.M).group(1)

setup(
    name="aizu",
    version=version,
    author="Aizu",
    author_email="sdk@aizu.io",
    description="Python SDK for the Aizu analytics event pipeline",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/aizu/aizu-python",
    project_urls={
        "Documentation": "https://docs.aizu.io",
        "Bug Tracker": "https://github.com/aizu/aizu-python/issues",
    },
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "aizu": ["py.typed"],
    },
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.25.0",
        "pydantic>=2.0.0",
        "structlog>=23.1.0",
        "click>=8.1.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "respx>=0.20.0",
            "mypy>=1.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "aizu=aizu.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Typing :: Typed",
    ],
    keywords=[
        "aizu",
        "analytics",
        "telemetry",
        "events",
        "tracking",
    ],
)
