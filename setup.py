from setuptools import setup, find_packages

setup(
    name="laterdate",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "sqlalchemy",
        "psycopg2-binary",
        "pydantic",
        "pydantic-settings",
        "python-dotenv",
        "requests",
        "prometheus-client",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "laterdate-dispatch=laterdate.reminders.runner:main",
        ],
    },
)
