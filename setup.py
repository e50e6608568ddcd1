"""
Setup script for lexitrack.

lexitrack is the review-scheduling service of a language-learning app.
It decides when flashcards and watched videos come back for review:

1. Flashcards follow SM-2 with a 0-5 recall quality
2. Watched videos are retried until understood
3. Video reviews climb a 1-3-7-14-30 day ladder

The 'lexitrack' command is the CLI entry point; the REST API is served by
uvicorn from lexitrack.api.main:app.
"""

from setuptools import find_packages, setup

setup(
    name="lexitrack",
    version="1.0.0",
    description="Spaced-review scheduling for vocabulary flashcards and video lessons",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["lexitrack", "lexitrack.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            # fastapi.testclient
            "httpx>=0.25.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "lexitrack=lexitrack.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition sm2 vocabulary video",
)
