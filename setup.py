import sys
import traceback
from setuptools import find_packages, setup

def get_packages():
    """Get package list with debug information."""
    try:
        packages = find_packages(include=["parley", "parley.*"])
        print(f"Found packages: {packages}")
        return packages
    except Exception as e:
        print(f"Error finding packages: {e}")
        print(f"Traceback:\n{traceback.format_exc()}")
        return []

try:
    print(f"Python version: {sys.version}")

    setup(
        name="parley",
        version="0.1.0",
        description="Conversational orchestration for platform-hosted AI agents",
        packages=get_packages(),
        package_dir={"": "."},
        include_package_data=True,
        install_requires=[
            # Core Dependencies
            "python-dotenv>=0.19.0",
            "pyyaml>=6.0",
            # LLM and API
            "litellm>=1.0.0",
            "tiktoken>=0.5.0",
            "httpx>=0.24.0",
            # Durable execution
            "temporalio>=1.5.0",
        ],
        extras_require={
            "test": [
                "pytest>=7.0.0",
                "pytest-asyncio>=0.21.0",
            ],
        },
        python_requires=">=3.9",
    )
except Exception as e:
    print(f"Setup failed: {e}")
    print(f"Traceback:\n{traceback.format_exc()}")
    raise
