"""
Setup script for recall-scheduler.

Recall Scheduler is the spaced-repetition scheduling engine behind lesson
completion and review sessions. It serves three roles:

1. Review recording - SM-2 updates per (learner, concept)
2. Review queues - concepts due now, most overdue first
3. Progress summaries - mastery, retention and average interval
"""

from setuptools import find_packages, setup

setup(
    name="recall-scheduler",
    version="1.0.0",
    description="SM-2 spaced-repetition scheduling engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["recall_scheduler", "recall_scheduler.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
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
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
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
    keywords="learning spaced-repetition sm2 scheduling education",
)
