"""
Setup script for the progression engine.

Tracks which parts of a Topic -> Module -> Page -> ContentItem catalog each
learner has unlocked and completed:

1. Completion - idempotent page completion with exactly-once XP awards
2. Unlocks - free, XP threshold, prerequisite and sequential policies
3. Quizzes - answer judging with gap-free per-learner attempt numbers
4. Reflections - one note per learner and page

The 'progression' command is the CLI entry point; the HTTP API is served
with `progression serve` or `uvicorn main:app`.
"""

from setuptools import find_packages, setup

setup(
    name="progression-engine",
    version="1.0.0",
    description="Learner progression, unlocks and XP for hierarchical course content",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "progression=progression.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning progression xp unlock quiz education",
)
