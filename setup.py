"""
Social Presence Scraper for Mountain Jewels Intelligence

Best-effort extraction of posts, profile attributes and comments from public
Facebook pages and session-authenticated Instagram profiles, with layered
fallback strategies and resilient, proxy-aware HTTP handling.
"""

from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="social-presence-scraper",
    version="1.0.0",
    author="Mountain Jewels Intelligence",
    author_email="engineering@mountainjewels.com",
    description="Multi-strategy Facebook and Instagram presence extraction",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/mountain-jewels-intelligence/social-presence-scraper",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: Other/Proprietary License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": ["black", "isort", "flake8", "mypy"],
        "test": ["pytest", "pytest-asyncio", "pytest-cov"],
    },
    entry_points={
        "console_scripts": [
            "presence-scraper=presence_scraper.cli:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
