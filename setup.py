"""Setup script for the NeuroDrive orchestrator package."""

from setuptools import setup, find_packages

setup(
    name="neurodrive",
    version="0.1.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    py_modules=["server"],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "uvicorn>=0.27",
        "httpx>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "python-dotenv>=1.0",
        "structlog>=24.1",
        "prometheus-client>=0.20",
        "asyncpg>=0.29",
        "sqlalchemy>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    description="NeuroDrive - self-healing tool orchestrator",
    author="NeuroDrive Team",
)
