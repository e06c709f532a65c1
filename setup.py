import setuptools
from setuptools import find_packages

with open("readme.md", "r") as fh:
    long_description = fh.read()


vars2find = ["__author__", "__version__", "__url__"]
vars2readme = {}
with open("./ollama_lifecycle/__init__.py") as f:
    for line in f.readlines():
        for v in vars2find:
            if line.startswith(v):
                line = line.replace(" ", "").replace('"', "").replace("'", "").strip()
                vars2readme[v] = line.split("=", 1)[1]

core_deps = [
    "httpx>=0.24.0",
    "tenacity",
    "pydantic>=2.0",
    "pydantic-settings>=2.0",
    "python-dotenv",
    "fastapi",
    "uvicorn",
]

setuptools.setup(
    name="ollama-lifecycle",
    url=vars2readme["__url__"],
    version=vars2readme["__version__"],
    author=vars2readme["__author__"],
    description="Startup, model installation, health checks and backups for an Ollama service",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=core_deps,
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "ollama-lifecycle=ollama_lifecycle.cli.lifecycle:main",
            "ollama-backup=ollama_lifecycle.cli.backup:main",
            "ollama-models=ollama_lifecycle.cli.models:main",
            "ollama-health=ollama_lifecycle.cli.health:main",
            "ollama-status-api=ollama_lifecycle.api.app:main",
        ],
    },
)
