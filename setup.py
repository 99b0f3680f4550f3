"""Setup configuration for Agent Orchestrator

Installation:
    # Development mode (editable install)
    pip install -e .

    # Production install
    pip install .

    # With development dependencies
    pip install -e ".[dev]"
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

# Read requirements from requirements.txt
requirements_file = Path(__file__).parent / "backend" / "requirements.txt"
requirements = []
if requirements_file.exists():
    with open(requirements_file, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            # Skip comments and empty lines
            if line and not line.startswith('#'):
                requirements.append(line)

setup(
    name="agent-orchestrator",
    version="1.0.0",
    description="Registry-backed agent loading, sequential workflows and intent routing",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Agent Orchestrator Team",
    author_email="",
    packages=find_packages(where="backend", exclude=["tests", "tests.*"]) + find_packages(include=["shared", "shared.*"]),
    package_dir={"": "backend", "shared": "shared"},
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "agent-orchestrator=cli.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Application Frameworks",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="agents orchestration workflow intent routing",
)
