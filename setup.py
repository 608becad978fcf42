"""Setup script for the Hotel Rate Engine."""
from setuptools import setup, find_namespace_packages

setup(
    name="hotel-rate-engine",
    version="1.0.0",
    description="Nightly rate calculation and yield management for hotel properties",
    packages=find_namespace_packages(include=["hotelrates*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "pydantic-settings",
        "sqlalchemy>=2",
        "aiohttp",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
