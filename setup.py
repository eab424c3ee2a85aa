from setuptools import setup, find_packages
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="watson_apis",
    version="0.2.0",
    description="Async Python clients for Watson cloud services",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "aiohttp",
        "aiofiles",
        "typing_extensions"
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio"
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
)
