from setuptools import setup, find_packages

setup(
    name="petcare-backend",
    version="0.1.0",
    packages=find_packages(include=["petcare", "petcare.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy>=2.0",
        "alembic",
        "psycopg2-binary",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "python-dateutil>=2.7",
        "celery",
        "kombu",
        "firebase-admin>=6.2",
        "google-auth",
        "prometheus-client",
        "prometheus-fastapi-instrumentator",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
