from setuptools import setup, find_packages

setup(
    name="medreminder",
    version="0.1.0",
    packages=find_packages(include=["medreminder", "medreminder.*"]),
    package_data={
        "medreminder": ["migrations/*.py", "migrations/versions/*.py"],
    },
    python_requires=">=3.10",
    install_requires=[
        "sqlalchemy>=2.0",
        "alembic",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "prometheus-client",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "medreminder-status=medreminder.main:main",
        ],
    },
)
