"""Setup configuration for durable-jobs library."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="durable-jobs",
    version="0.1.0",
    author="Durable Jobs Contributors",
    description="Durable background job queue with pluggable storage drivers and a scheduler",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=[
        "asyncpg>=0.27.0",
        "aiokafka>=0.8.0",
        "pydantic>=2.0.0",
        "python-dateutil>=2.8.0",
        "psutil>=5.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "durable-jobs-worker=durable_jobs.worker_main:main",
            "durable-jobs-scheduler=durable_jobs.scheduler_main:main",
            "durable-jobs-cleanup=durable_jobs.cleanup_main:main",
        ],
    },
)
