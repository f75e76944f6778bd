"""Setup script for puod."""

from setuptools import find_packages, setup

setup(
    name="puod-integrations",
    version="0.1.0",
    description="Multi-tenant query pipeline over orchestrator, lakehouse, warehouse and cloud ETL platforms",
    author="puod Team",
    packages=find_packages(include=["puod", "puod.*"]),
    package_data={
        "puod": ["py.typed"],
    },
    install_requires=[
        "pandas>=2.0.0",  # Row shaping and timestamp parsing
        "click>=8.0.0,<8.2.0",  # CLI framework, bounded for typer 0.9
        "networkx>=3.0",  # Task dependency ordering
        "typer>=0.9.0,<0.10.0",  # Modern CLI framework
        "rich>=13.0.0",  # CLI tables and panels
        "sqlalchemy>=2.0.0",  # Warehouse connections
        "psycopg2-binary>=2.9.0",  # PostgreSQL driver for the warehouse connector
        "boto3>=1.26.0",  # AWS Glue connector
        "requests>=2.28.0",  # Airflow and Databricks REST connectors
        "pyyaml>=6.0",  # Configuration handling
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.1.0",
            "black>=22.1.0",
            "isort>=5.10.1",
            "flake8>=4.0.1",
            "autoflake>=2.2.0",
            "pre-commit>=3.0.0",
            "mypy>=1.0.0",  # Type checking
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.1.0",
            "requests-mock>=1.11.0",  # HTTP mocking for REST connectors
        ],
    },
    entry_points={
        "console_scripts": [
            "puod=puod.cli.main:cli",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)
